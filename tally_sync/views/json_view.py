"""
JSON View
Formats responses as JSON
"""

from datetime import datetime
from typing import Any, Dict, List, Optional


class JsonView:
    """JSON response formatter"""

    @staticmethod
    def error(code: str, message: str, details: Optional[str] = None) -> Dict:
        """Format error payload (used as HTTPException detail)"""
        return {
            "error": True,
            "code": code,
            "message": message,
            "details": details,
            "timestamp": datetime.now().isoformat()
        }

    @staticmethod
    def paginated(data: List[Dict[str, Any]], total: int, limit: int, offset: int) -> Dict:
        """Format a range-paginated listing"""
        return {
            "total": total,
            "limit": limit,
            "offset": offset,
            "count": len(data),
            "data": data
        }
