from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status

from models.carrier import CarrierRecord
from repositories.stores import Stores, get_stores
from utils.csv_export import carriers_to_csv


router = APIRouter(prefix="/carriers", tags=["carriers"])


@router.get("/", response_model=List[CarrierRecord], response_model_by_alias=True)
def list_carriers(stores: Stores = Depends(get_stores)):
    """Get all stored carriers, most recent first"""
    return stores.carriers.list_carriers()


@router.get("/export.csv")
def export_carriers(stores: Stores = Depends(get_stores)):
    """Download all stored carriers as CSV, one row per insurance policy"""
    content = carriers_to_csv(stores.carriers.list_carriers())
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="fmcsa_carriers.csv"'},
    )


@router.get("/{mc_number}", response_model=CarrierRecord, response_model_by_alias=True)
def get_carrier(mc_number: str, stores: Stores = Depends(get_stores)):
    """Get a carrier by MC number"""
    carrier = stores.carriers.get_carrier(mc_number)
    if not carrier:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Carrier with MC {mc_number} not found"
        )
    return carrier
