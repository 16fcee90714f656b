from . import aws
from .model import BaseModel, json_default

__all__ = ["aws", "BaseModel", "json_default"]
