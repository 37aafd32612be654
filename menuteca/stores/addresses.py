"""
Address store — geo-radius address search.

The backend exposes get_addresses_within_radius as an RPC. Where that
function is missing or failing, addresses are selected directly and
filtered by haversine distance on the client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from kungfu import Result, Ok, Error

from menuteca._types import Clock, monotonic
from menuteca.gateway import Gateway, Query, Row
from menuteca.geo import Coordinates, haversine_km
from menuteca.localize import Language, localized
from menuteca.stores._base import DomainStore
from menuteca.stores._policy import ADDRESSES, StorePolicy
from menuteca.stores._types import StoreError, StoreErrorKind, StoreErrors
from menuteca.stores.users import UserStore

logger = logging.getLogger(__name__)

NEARBY_RPC = "get_addresses_within_radius"
DEFAULT_RADIUS_KM = 10.0
DEFAULT_LIMIT = 20


@dataclass(frozen=True, slots=True)
class NearbyQuery:
    latitude: float
    longitude: float
    radius_km: float = DEFAULT_RADIUS_KM
    limit: int = DEFAULT_LIMIT

    @property
    def center(self) -> Coordinates:
        return Coordinates(self.latitude, self.longitude)

    def problem(self) -> str | None:
        if not -90 <= self.latitude <= 90:
            return "Invalid latitude (must be between -90 and 90)"
        if not -180 <= self.longitude <= 180:
            return "Invalid longitude (must be between -180 and 180)"
        if not 0.1 <= self.radius_km <= 100:
            return "Invalid radius (must be between 0.1 and 100 km)"
        if not 1 <= self.limit <= 50:
            return "Invalid limit (must be between 1 and 50)"
        return None


@dataclass(frozen=True, slots=True)
class Address:
    id: str
    street: str
    number: str | None = None
    additional_information: str | None = None
    postal_code: str | None = None
    city: str = ""
    country: str = ""
    coordinates: Coordinates | None = None
    formatted_address: str | None = None
    distance: float | None = None

    @classmethod
    def from_row(cls, row: Row, language: Language, center: Coordinates) -> Address:
        coordinates = _coordinates(row)
        distance = row.get("distance_km")
        if distance is None and coordinates is not None:
            distance = haversine_km(center, coordinates)
        return cls(
            id=row["id"],
            street=localized(row.get("street"), language),
            number=row.get("number"),
            additional_information=row.get("additional_information"),
            postal_code=row.get("postal_code"),
            city=localized(row.get("city"), language),
            country=localized(row.get("country"), language),
            coordinates=coordinates,
            formatted_address=row.get("formatted_address"),
            distance=distance,
        )


def _coordinates(row: Row) -> Coordinates | None:
    value: Any = row.get("coordinates")
    if isinstance(value, dict) and "latitude" in value and "longitude" in value:
        return Coordinates(float(value["latitude"]), float(value["longitude"]))
    return None


class AddressStore(DomainStore[NearbyQuery, list[Address]]):
    name = "addresses"

    def __init__(
        self,
        gateway: Gateway,
        users: UserStore,
        *,
        policy: StorePolicy = ADDRESSES,
        clock: Clock = monotonic,
    ) -> None:
        super().__init__(gateway, policy=policy, clock=clock)
        self._users = users

    def _cache_key(self, key: NearbyQuery) -> str:
        return f"nearby:{key.latitude:.5f}:{key.longitude:.5f}:{key.radius_km:g}:{key.limit}"

    def _empty(self, key: NearbyQuery) -> list[Address]:
        return []

    async def _fetch(self, key: NearbyQuery) -> Result[list[Address], StoreError]:
        language = self._users.language
        args = {
            "center_lat": key.latitude,
            "center_lng": key.longitude,
            "radius_km": key.radius_km,
            "max_results": key.limit,
        }
        match await self._call(lambda: self._gateway.rpc(NEARBY_RPC, args)):
            case Ok(rows) if isinstance(rows, list):
                return Ok([Address.from_row(row, language, key.center) for row in rows])
            case Error(e) if e.kind is StoreErrorKind.RATE_LIMITED:
                return Error(e)
            case Ok(_):
                logger.warning("%s returned no rows list, falling back", NEARBY_RPC)
            case Error(e):
                logger.warning("%s failed, falling back to select: %s", NEARBY_RPC, e)

        return await self._nearby_by_select(key, language)

    async def _nearby_by_select(self, key: NearbyQuery, language: Language) -> Result[list[Address], StoreError]:
        match await self._call(lambda: self._gateway.select(Query("addresses"))):
            case Error(e):
                return Error(e)
            case Ok(rows):
                addresses = [
                    a for a in (Address.from_row(row, language, key.center) for row in rows.data)
                    if a.distance is not None and a.distance <= key.radius_km
                ]
                addresses.sort(key=lambda a: a.distance or 0.0)
                return Ok(addresses[: key.limit])

    async def find_nearby(
        self,
        latitude: float,
        longitude: float,
        radius_km: float = DEFAULT_RADIUS_KM,
        limit: int = DEFAULT_LIMIT,
    ) -> Result[list[Address], StoreError]:
        """
        Addresses within radius_km of a point, nearest first.

        While throttled, the last known result for the same query is returned
        (empty when there is none) and the store state carries the error.
        """
        query = NearbyQuery(latitude, longitude, radius_km, limit)
        if (problem := query.problem()) is not None:
            return Error(StoreErrors.validation(problem))
        match await self._read(query):
            case Error(e) if e.kind is StoreErrorKind.RATE_LIMITED:
                return Ok(self._last_known(query))
            case result:
                return result


__all__ = ("NearbyQuery", "Address", "AddressStore", "NEARBY_RPC")
