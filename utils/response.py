from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from models.response import APIResponse


def api_response(data=None, message="Success", status_code=200):
	# Models carry datetimes, so encode before handing to JSONResponse
	return JSONResponse(
		status_code=status_code,
		content=jsonable_encoder(APIResponse(data=data, message=message, status_code=status_code)),
	)
