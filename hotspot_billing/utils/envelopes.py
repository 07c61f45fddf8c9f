from typing import Any, Dict


def api_success(**fields: Any) -> Dict[str, Any]:
	return {"success": True, **fields}


def api_error(message: str) -> Dict[str, Any]:
	return {"success": False, "error": message}
