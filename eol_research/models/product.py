"""
Product query model for the EOL Research engine.
One immutable record per inventory item handed to the orchestrator.
"""
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProductQuery(BaseModel):
    """A single product to research. Only product_id is required."""
    model_config = ConfigDict(frozen=True)
    
    product_id: str = Field(min_length=1)
    manufacturer: Optional[str] = None
    category: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None
    
    @field_validator("product_id")
    @classmethod
    def strip_product_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("product_id must not be blank")
        return value
    
    @field_validator("manufacturer", "category", "type", "description")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None
    
    def hint_text(self) -> str:
        """Free text that may reveal a manufacturer (category, type, description)."""
        return " ".join(part for part in (self.category, self.type, self.description) if part)
