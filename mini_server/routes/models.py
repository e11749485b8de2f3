import logging
from typing import List

from fastapi import APIRouter, Depends

from mini_server.config import Settings, get_settings
from mini_server.models.generation import ModelInfo
from mini_server.models.responses import DataResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["models"])


@router.get("/models", response_model=DataResponse[List[ModelInfo]])
async def list_models(settings: Settings = Depends(get_settings)):
    """List the generation models registered in the configuration file."""
    models = []
    for key, config in settings.REGISTERED_MODELS.items():
        fields = {name: value for name, value in config.items() if name in ModelInfo.model_fields and name != "id"}
        fields.setdefault("name", key)
        models.append(ModelInfo(id=config.get("model_name", key), **fields))
    return {"data": models}
