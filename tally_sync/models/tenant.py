"""
Tenant Models
The (company, division) pair that partitions all stored data
"""

from pydantic import BaseModel, ConfigDict, Field


class TenantScope(BaseModel):
    model_config = ConfigDict(frozen=True)

    company_id: str = Field(min_length=1)
    division_id: str = Field(min_length=1)

    @property
    def key(self) -> str:
        return f"{self.company_id}/{self.division_id}"

    def stamp(self, row: dict) -> dict:
        """Return a copy of row carrying this tenant's ids"""
        stamped = dict(row)
        stamped["company_id"] = self.company_id
        stamped["division_id"] = self.division_id
        return stamped
