"""Client and vehicle reference resolution."""

from typing import Any
from uuid import UUID

from beartype import beartype

from ..core.database import Database
from ..core.errors import ServiceError
from ..core.result_types import Err, Ok, Result
from ..models.rating import ClientSummary, VehicleAttributes


class RegistryService:
    """Resolve the opaque client and vehicle references held by policies."""

    def __init__(self, db: Database) -> None:
        self._db = db

    @beartype
    async def resolve_client(
        self, client_id: UUID
    ) -> Result[ClientSummary, ServiceError]:
        """Look up a client by id."""
        query = """
            SELECT id, first_name, last_name
            FROM clients
            WHERE id = $1
        """
        row = await self._db.fetchrow(query, client_id)
        if not row:
            return Err(ServiceError.not_found("Client", client_id))
        return Ok(self._row_to_client(row))

    @beartype
    async def resolve_vehicle(
        self, vehicle_id: UUID
    ) -> Result[VehicleAttributes, ServiceError]:
        """Look up a vehicle's rating attributes by id."""
        query = """
            SELECT id, make, model, registration_number,
                   engine_capacity, power, first_registration_date
            FROM vehicles
            WHERE id = $1
        """
        row = await self._db.fetchrow(query, vehicle_id)
        if not row:
            return Err(ServiceError.not_found("Vehicle", vehicle_id))
        return Ok(self._row_to_vehicle(row))

    def _row_to_client(self, row: Any) -> ClientSummary:
        full_name = f"{row['first_name']} {row['last_name']}".strip()
        return ClientSummary(client_id=row["id"], full_name=full_name)

    def _row_to_vehicle(self, row: Any) -> VehicleAttributes:
        return VehicleAttributes(
            vehicle_id=row["id"],
            engine_capacity=row["engine_capacity"],
            power=row["power"],
            first_registration_date=row["first_registration_date"],
            make=row["make"],
            model=row["model"],
            registration_number=row["registration_number"],
        )
