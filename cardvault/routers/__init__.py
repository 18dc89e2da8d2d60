"""
FastAPI routers grouped by concern (students, storage).

Each module exposes an APIRouter included by cardvault.app.create_app; the
RecordStore instance lives on app.state.
"""
