from typing import List
from datetime import datetime, timezone

from database import BaseRepository
from models.user import BlockedIP


class BlockedIPRepository(BaseRepository):
    """Repository for blocked client IP addresses in Neo4j"""

    def list_blocked_ips(self) -> List[BlockedIP]:
        query = """
        MATCH (b:BlockedIP)
        RETURN b
        ORDER BY b.blocked_at DESC
        """
        return [BlockedIP.model_validate(record['b']) for record in self.execute_query(query)]

    def block_ip(self, ip: str, reason: str = "") -> BlockedIP:
        """Block an IP; blocking an already blocked IP replaces the reason"""
        query = """
        MERGE (b:BlockedIP {ip: $ip})
        SET b.reason = $reason, b.blocked_at = $blocked_at
        RETURN b
        """
        params = {
            "ip": ip,
            "reason": reason or "No reason provided",
            "blocked_at": datetime.now(timezone.utc).isoformat(),
        }
        result = self.execute_query(query, params)
        return BlockedIP.model_validate(result[0]['b'])

    def unblock_ip(self, ip: str) -> bool:
        query = """
        MATCH (b:BlockedIP {ip: $ip})
        DELETE b
        RETURN count(b) as deleted
        """
        result = self.execute_query(query, {"ip": ip})
        return result[0]['deleted'] > 0 if result else False

    def is_blocked(self, ip: str) -> bool:
        query = """
        MATCH (b:BlockedIP {ip: $ip})
        RETURN count(b) > 0 as blocked
        """
        result = self.execute_query(query, {"ip": ip})
        return result[0]['blocked'] if result else False
