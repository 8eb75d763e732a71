from fastapi import APIRouter

from hims_billing.api import routes_ipd_discharge, routes_nicu

api_router = APIRouter()

api_router.include_router(routes_ipd_discharge.router)
api_router.include_router(routes_nicu.router)
