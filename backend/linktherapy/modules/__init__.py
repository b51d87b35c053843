"""Feature modules live here. Each module may define:

- models.py   (SQLAlchemy models using linktherapy.core.database.Base)
- schemas.py  (Pydantic models)
- service.py  (business logic)
- repository.py (data access)
- router.py   (FastAPI APIRouter exported as `router`, optionally more
  routers exported under names ending in `_router`)

Routers are auto-discovered and mounted under /api; models are auto-imported
so the schema is complete before tables are created.
"""
