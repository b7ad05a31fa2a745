from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health_check(request: Request) -> dict:
    """
    Checks the health of a project.

    It returns 200 if the project is healthy.
    """
    engine = getattr(request.app.state, "form_engine", None)
    if engine is None:
        return {"status": "starting"}
    return {
        "status": "ok",
        "services": [
            engine.embedding_provider.get_health(),
            engine.schema_generator.get_health(),
        ],
    }
