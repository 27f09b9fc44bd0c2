from typing import Dict, Mapping

from pydantic import BaseModel, field_validator


class PrivilegeCatalog(BaseModel):
    """Application-defined privileges, keyed by id in declaration order.

    Names must be unique as well as ids: checks accept a privilege by name,
    and each name has to resolve to exactly one id. A catalog that repeats a
    name is rejected rather than resolved to its first id.
    """

    privs: Dict[int, str]

    @field_validator("privs")
    @classmethod
    def check_privs(cls, value: Dict[int, str]) -> Dict[int, str]:
        for priv_id, name in value.items():
            if priv_id <= 0:
                raise ValueError(f"Privilege id must be positive, got {priv_id}")
            if not name or not name.strip():
                raise ValueError(f"Privilege {priv_id} has an empty name")
        if len(set(value.values())) != len(value):
            raise ValueError("Privilege names must be unique")
        return value

    @classmethod
    def from_mapping(cls, privs: Mapping) -> "PrivilegeCatalog":
        return cls(privs=dict(privs))
