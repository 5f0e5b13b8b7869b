from dataclasses import dataclass, field
from typing import Any

from app.models.common import new_id


@dataclass(slots=True)
class Model:
    name: str = ""
    schema: Any = None
    id: str = field(default_factory=new_id)
