from typing import Optional, List, Dict, Union
from pydantic import BaseModel, Field, computed_field

Identifier = Union[int, str]


class ProductRow(BaseModel):
    id: Identifier


class BatchRow(BaseModel):
    id: Identifier
    product_id: Optional[Identifier] = None
    batch_number: Optional[str] = None


class Totals(BaseModel):
    products: int
    batches: int


class BatchNumberDuplicate(BaseModel):
    batch_number: str
    count: int


class ProductBatchDuplicate(BaseModel):
    product_id: Optional[Identifier] = None
    batch_number: str
    count: int


class Duplicates(BaseModel):
    by_batch_number: List[BatchNumberDuplicate] = Field(default_factory=list)
    by_product_and_batch: List[ProductBatchDuplicate] = Field(default_factory=list)


class IntegrityReport(BaseModel):
    totals: Totals
    duplicates: Duplicates
    orphans: List[BatchRow] = Field(default_factory=list)
    orphans_count: int = 0

    @computed_field
    @property
    def has_issues(self) -> bool:
        return bool(
            self.duplicates.by_batch_number
            or self.duplicates.by_product_and_batch
            or self.orphans_count
        )


class CustomRoleOut(BaseModel):
    id: str
    name: str
    label: str
    description: Optional[str] = None


class RoleMembership(BaseModel):
    """One user_roles row, with the custom role joined in when present."""
    user_id: str
    role: Optional[str] = None
    custom_role_id: Optional[str] = None
    custom_role_name: Optional[str] = None


class UserRolesOut(BaseModel):
    user_id: Optional[str]
    status: str
    system_roles: List[str]
    custom_roles: List[str]


class FeaturesOut(BaseModel):
    user_id: Optional[str]
    features: Dict[str, bool]


class RoleChangeOut(BaseModel):
    user_id: str
    role: Optional[str] = None
    custom_role_id: Optional[str] = None
    action: str
