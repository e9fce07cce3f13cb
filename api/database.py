import logging
from contextlib import contextmanager
from typing import Generator, Optional

from neo4j import GraphDatabase, Session
from config import settings

logger = logging.getLogger(__name__)


class Neo4jConnection:
    """Manages Neo4j database connections with connection pooling."""

    def __init__(self):
        """Initialize Neo4j connection with settings from config."""
        self.uri = settings.neo4j_uri
        self.user = settings.neo4j_user
        self.password = settings.neo4j_password

        if not self.password:
            raise ValueError("NEO4J_PASSWORD is required in settings")

        self.driver = GraphDatabase.driver(
            self.uri,
            auth=(self.user, self.password),
            max_connection_pool_size=50,
            connection_acquisition_timeout=30,
            max_transaction_retry_time=30
        )

    def close(self):
        """Close the driver connection"""
        if self.driver:
            self.driver.close()

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session with automatic cleanup"""
        session = self.driver.session()
        try:
            yield session
        finally:
            session.close()

    def verify_connectivity(self) -> bool:
        """Verify database connectivity.

        Returns:
            bool: True if connected, False otherwise
        """
        try:
            with self.get_session() as session:
                result = session.run("RETURN 1 as test")
                return result.single()["test"] == 1
        except Exception as e:
            logger.error(f"Database connectivity check failed: {e}")
            return False

    def ensure_constraints(self):
        """Create the uniqueness constraints the upsert keys rely on."""
        statements = [
            "CREATE CONSTRAINT carrier_mc IF NOT EXISTS FOR (c:Carrier) REQUIRE c.mc_number IS UNIQUE",
            "CREATE CONSTRAINT user_id IF NOT EXISTS FOR (u:User) REQUIRE u.id IS UNIQUE",
            "CREATE CONSTRAINT user_email IF NOT EXISTS FOR (u:User) REQUIRE u.email IS UNIQUE",
            "CREATE CONSTRAINT blocked_ip IF NOT EXISTS FOR (b:BlockedIP) REQUIRE b.ip IS UNIQUE",
        ]
        with self.get_session() as session:
            for statement in statements:
                session.run(statement)


_db: Optional[Neo4jConnection] = None


def get_db() -> Neo4jConnection:
    """Return the process-wide connection, created on first use."""
    global _db
    if _db is None:
        _db = Neo4jConnection()
    return _db


def close_db():
    global _db
    if _db is not None:
        _db.close()
        _db = None


class BaseRepository:
    """Base repository with common Neo4j operations.

    Provides common database operations that all specific repositories inherit.
    Handles query execution and connection management.
    """

    def __init__(self, db: Optional[Neo4jConnection] = None):
        self._db = db

    @property
    def db(self) -> Neo4jConnection:
        if self._db is None:
            self._db = get_db()
        return self._db

    def execute_query(self, query: str, parameters: dict = None) -> list:
        """Execute a Cypher query and return results.

        Args:
            query: Cypher query string
            parameters: Optional query parameters

        Returns:
            list: Query results as list of dictionaries
        """
        with self.db.get_session() as session:
            result = session.run(query, parameters or {})
            return [record.data() for record in result]
