from fastapi import APIRouter, Depends, Response, status

from app.core.errors import NotFound
from app.models.common import new_id
from app.models.model import Model
from app.routers.deps import get_model_store
from app.schemas.model import ModelRead, ModelWrite
from app.services.registry import ModelStore

router = APIRouter(prefix="/models", tags=["models"])


def _model_not_found() -> NotFound:
    return NotFound("MODEL_NOT_FOUND", "model not found")


@router.get("", response_model=list[ModelRead])
def list_models(models: ModelStore = Depends(get_model_store)) -> list[Model]:
    return models.list()


@router.post("", response_model=ModelRead, status_code=status.HTTP_201_CREATED)
def create_model(payload: ModelWrite, models: ModelStore = Depends(get_model_store)) -> Model:
    model = Model(id=payload.id or new_id(), name=payload.name, schema=payload.schema_)
    return models.add(model)


@router.get("/{model_id}", response_model=ModelRead)
def get_model(model_id: str, models: ModelStore = Depends(get_model_store)) -> Model:
    model = models.get(model_id)
    if model is None:
        raise _model_not_found()
    return model


@router.put("/{model_id}", response_model=ModelRead)
def update_model(model_id: str, payload: ModelWrite, models: ModelStore = Depends(get_model_store)) -> Model:
    updated = models.update(model_id, lambda _: Model(id=model_id, name=payload.name, schema=payload.schema_))
    if updated is None:
        raise _model_not_found()
    return updated


@router.delete("/{model_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_model(model_id: str, models: ModelStore = Depends(get_model_store)) -> Response:
    if not models.delete(model_id):
        raise _model_not_found()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
