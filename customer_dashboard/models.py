"""
Pydantic models for users, customers and customer list queries.

Python attribute names are snake_case; the backend's camelCase wire names
(``razaoSocial``, ``conectaPlus``...) are declared as aliases, so models
are built from backend JSON and dumped back with ``by_alias=True``.
"""

import math
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .cnpj import CNPJ_LENGTH, format_cnpj
from .tags import MAX_TAGS

# UI sentinels meaning "no constraint" on a filter field
UNCONSTRAINED_VALUES = ("", "all")


class CustomerStatus(str, Enum):
    """Lifecycle status of a customer, as stored by the backend."""

    ACTIVE = "ativo"
    INACTIVE = "inativo"


class User(BaseModel):
    """
    Authenticated user as returned by the backend auth endpoints.

    Attributes:
        id: User identifier
        name: Display name
        email: Email address
        role: Role name; only ``"admin"`` grants write permissions
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    email: str = ""
    role: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value


def _check_tags(tags: List[str]) -> List[str]:
    if len(tags) > MAX_TAGS:
        raise ValueError(f"A customer can have at most {MAX_TAGS} tags")
    if len(set(tags)) != len(tags):
        raise ValueError("Tags must be unique")
    return tags


class Customer(BaseModel):
    """
    Customer record.

    Attributes:
        id: Backend identifier
        legal_name: Registered company name (razaoSocial)
        tax_id: CNPJ, 14 digits without separators
        display_name: Trade name (nomeFachada)
        tags: Up to three unique tags
        status: Active or inactive
        premium: Premium add-on flag (conectaPlus)
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int
    legal_name: str = Field(alias="razaoSocial")
    tax_id: str = Field(alias="cnpj")
    display_name: str = Field(alias="nomeFachada")
    tags: List[str] = Field(default_factory=list)
    status: CustomerStatus = CustomerStatus.ACTIVE
    premium: bool = Field(default=False, alias="conectaPlus")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, tags: List[str]) -> List[str]:
        return _check_tags(tags)

    @property
    def masked_tax_id(self) -> str:
        """Tax ID in ``NN.NNN.NNN/NNNN-NN`` display form."""
        return format_cnpj(self.tax_id)


class CustomerDraft(BaseModel):
    """
    Validated payload for creating a customer.

    ``tax_id`` holds digits only; masking happens in the form, never on
    the wire.
    """

    model_config = ConfigDict(populate_by_name=True)

    legal_name: str = Field(alias="razaoSocial", min_length=1)
    tax_id: str = Field(
        alias="cnpj",
        min_length=CNPJ_LENGTH,
        max_length=CNPJ_LENGTH,
        pattern=r"^[0-9]+$",
    )
    display_name: str = Field(alias="nomeFachada", min_length=1)
    tags: List[str] = Field(default_factory=list)
    status: CustomerStatus = CustomerStatus.ACTIVE
    premium: bool = Field(default=False, alias="conectaPlus")

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, tags: List[str]) -> List[str]:
        return _check_tags(tags)

    def to_payload(self) -> Dict[str, Any]:
        """Request body for ``POST /customers``."""
        return self.model_dump(mode="json", by_alias=True)


class ListQuery(BaseModel):
    """
    Query for one page of the customer list.

    A filter field set to None is unconstrained. Empty strings and the
    ``"all"`` sentinel used by select inputs are normalized to None.

    Attributes:
        page: 1-based page number
        page_size: Items per page (``limit`` on the wire)
        legal_name: Substring filter on the legal name
        tax_id: Substring filter on the tax ID
        status: Status filter
        premium: Premium flag filter
    """

    model_config = ConfigDict(frozen=True)

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1)
    legal_name: Optional[str] = None
    tax_id: Optional[str] = None
    status: Optional[CustomerStatus] = None
    premium: Optional[bool] = None

    @field_validator("legal_name", "tax_id", "status", "premium", mode="before")
    @classmethod
    def normalize_unconstrained(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if value.lower() in UNCONSTRAINED_VALUES:
                return None
        return value

    def to_params(self) -> Dict[str, str]:
        """Query-string parameters for ``GET /customers`` (non-empty fields only)."""
        params = {"page": str(self.page), "limit": str(self.page_size)}
        if self.legal_name:
            params["razaoSocial"] = self.legal_name
        if self.tax_id:
            params["cnpj"] = self.tax_id
        if self.status is not None:
            params["status"] = self.status.value
        if self.premium is not None:
            params["conectaPlus"] = "true" if self.premium else "false"
        return params


class ListResult(BaseModel):
    """
    One page of customers as returned by ``GET /customers``.

    ``total_pages`` is ``ceil(total_count / page_size)``; it is computed
    when the backend omits it.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    items: List[Customer] = Field(default_factory=list, alias="data")
    total_count: int = Field(default=0, ge=0, alias="total")
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, alias="limit")
    total_pages: Optional[int] = Field(default=None, ge=0, alias="totalPages")

    @model_validator(mode="after")
    def fill_total_pages(self) -> "ListResult":
        if self.total_pages is None:
            self.total_pages = math.ceil(self.total_count / self.page_size)
        return self

    @classmethod
    def empty(cls, page_size: int = 10) -> "ListResult":
        return cls(items=[], total_count=0, page=1, page_size=page_size)
