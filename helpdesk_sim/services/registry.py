"""
Session Registry

Process-wide maps participant -> Session and connection -> participant.
These are the only structures shared across sessions; every operation on
them holds the registry lock.
"""
import threading
from typing import Callable, Dict, List, Optional

from helpdesk_sim.exceptions import NotFoundError
from helpdesk_sim.models.schemas import Agent, Parity
from helpdesk_sim.services.broadcast import Broadcaster
from helpdesk_sim.services.roster import fresh_roster
from helpdesk_sim.services.session import Session
from helpdesk_sim.utils.clock import Clock
from helpdesk_sim.utils.logger import get_logger

logger = get_logger(__name__)


class SessionRegistry:
    """Lock-guarded session store"""

    def __init__(
        self,
        broadcaster: Broadcaster,
        clock: Clock,
        roster_factory: Callable[[], List[Agent]] = fresh_roster
    ):
        self._broadcaster = broadcaster
        self._clock = clock
        self._roster_factory = roster_factory
        self._sessions: Dict[str, Session] = {}
        self._connections: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get_or_create(self, participant_id: str, parity: Parity) -> Session:
        """Return the participant's session, creating a fresh stage-1 one if needed"""
        with self._lock:
            session = self._sessions.get(participant_id)
            if session is None:
                session = Session(participant_id, Parity(parity), self._broadcaster, self._roster_factory())
                self._sessions[participant_id] = session
                logger.info(f"Created new session for participant: {participant_id} ({session.parity.value})")
            return session

    def get(self, participant_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(participant_id)

    def require(self, participant_id: str) -> Session:
        """
        Raises:
            NotFoundError: If no session exists for the participant
        """
        session = self.get(participant_id)
        if session is None:
            logger.warning(f"No session found for participant: {participant_id}")
            raise NotFoundError(f"Session not found for participant {participant_id}")
        return session

    def lookup_connection(self, connection_id: str) -> Optional[Session]:
        with self._lock:
            participant_id = self._connections.get(connection_id)
            if participant_id is None:
                return None
            return self._sessions.get(participant_id)

    def bind(self, connection_id: str, participant_id: str) -> Session:
        """
        Attach a connection to an existing session and mark it active

        A connection bound to another participant is moved.
        """
        with self._lock:
            session = self._sessions.get(participant_id)
            if session is None:
                raise NotFoundError(f"Session not found for participant {participant_id}")

            previous = self._connections.get(connection_id)
            if previous is not None and previous != participant_id:
                self._detach(connection_id)

            session.connections.add(connection_id)
            self._connections[connection_id] = participant_id
            session.activate()
            logger.info(
                f"Connection {connection_id} bound to session {participant_id}. "
                f"Total connections: {len(session.connections)}"
            )
            return session

    def unbind(self, connection_id: str) -> Optional[Session]:
        """
        Detach a connection; the last one leaving deactivates the session

        The session object itself is kept so its state survives a reconnect.

        Returns:
            The session the connection belonged to, if any
        """
        with self._lock:
            return self._detach(connection_id)

    def _detach(self, connection_id: str) -> Optional[Session]:
        participant_id = self._connections.pop(connection_id, None)
        if participant_id is None:
            return None
        session = self._sessions.get(participant_id)
        if session is None:
            return None

        session.connections.discard(connection_id)
        logger.info(
            f"Connection {connection_id} left session {participant_id}. "
            f"Remaining connections: {len(session.connections)}"
        )
        if not session.connections and session.active:
            session.deactivate(self._clock.now_ms())
        return session

    def reset(self, participant_id: str) -> bool:
        """
        Stop and delete a session regardless of its connections

        Returns:
            True if a session existed
        """
        with self._lock:
            session = self._sessions.pop(participant_id, None)
            if session is None:
                return False
            for connection_id in [c for c, p in self._connections.items() if p == participant_id]:
                del self._connections[connection_id]
            session.deactivate(self._clock.now_ms())
            session.connections.clear()
            logger.info(f"Cleaned up session for {participant_id}")
            return True

    def sessions(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def connections(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._connections)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    @property
    def active_count(self) -> int:
        with self._lock:
            return sum(1 for session in self._sessions.values() if session.active)
