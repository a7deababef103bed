"""
Request bodies accepted by the bridge endpoints.

Required fields are declared optional here so that a missing value reaches
the orchestrator and is reported as a 400 naming the field.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel


class PriceCheckRequest(BaseModel):
    itemText: Optional[str] = None
    league: Optional[str] = None


class ChatRequest(BaseModel):
    message: Optional[str] = None
    context: Optional[Dict[str, Any]] = None
