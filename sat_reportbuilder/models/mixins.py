"""
Model mixins: audit timestamps and workflow state management.
"""

import datetime
import json
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import Column, DateTime, Text

log = logging.getLogger(__name__)


class AuditMixin(object):
    """
    Mixin for models, adds created_on and changed_on columns,
    maintained automatically on insert and update.
    """

    created_on = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)
    changed_on = Column(
        DateTime,
        default=datetime.datetime.utcnow,
        onupdate=datetime.datetime.utcnow,
        nullable=False,
    )


class WorkflowMixin(object):
    """
    Workflow state management mixin.

    The host model declares a ``status`` column and overrides
    ``__workflow_transitions__``, a map of state to ``{action: target}``.
    Every accepted transition is appended to ``state_history`` as a JSON list of
    ``{from, to, action, userId, comment, timestamp}`` records.
    """

    state_history = Column(Text, nullable=True)

    # Configuration - override in subclasses
    __workflow_transitions__ = {}
    __workflow_enum__ = None

    @property
    def workflow_state(self) -> str:
        status = self.status
        return getattr(status, "value", status)

    def target_state(self, action: str) -> Optional[str]:
        """State reached by ``action`` from the current state, if any."""
        return self.__workflow_transitions__.get(self.workflow_state, {}).get(action)

    def change_state(
        self,
        new_state: str,
        action: str,
        user_id: Optional[int] = None,
        comment: Optional[str] = None,
    ) -> bool:
        """
        Change workflow state and record the transition.

        :param new_state: Target state to transition to
        :param action: Name of the action causing the transition
        :param user_id: User performing the change
        :param comment: Optional comment kept with the history record
        :return: True if successful, False if transition not allowed
        """
        new_state = getattr(new_state, "value", new_state)
        if self.target_state(action) != new_state:
            log.warning(
                "Invalid transition from %s to %s on %s",
                self.workflow_state,
                new_state,
                action,
            )
            return False
        old_state = self.workflow_state
        history = self.get_state_history()
        history.append(
            {
                "from": old_state,
                "to": new_state,
                "action": action,
                "userId": user_id,
                "comment": comment,
                "timestamp": datetime.datetime.utcnow().isoformat(),
            }
        )
        self.state_history = json.dumps(history)
        if self.__workflow_enum__ is not None:
            new_state = self.__workflow_enum__(new_state)
        self.status = new_state
        return True

    def get_state_history(self) -> List[Dict[str, Any]]:
        """Get complete state change history."""
        if not self.state_history:
            return []
        try:
            return json.loads(self.state_history)
        except json.JSONDecodeError:
            log.error("Corrupted state history on %s", self)
            return []

    def get_available_actions(self) -> List[str]:
        return list(self.__workflow_transitions__.get(self.workflow_state, {}).keys())
