"""Experiment win tracking.

WHAT:
    Records a "win" for an A/B experiment option when a referral channel
    under test produces a signature.

WHY:
    Share surfaces (Facebook like button, popup, posted action) and email
    variants compete; win counts per option measure which one converts.

CONSTRAINTS:
    - One win per matched channel per submission.
    - Recording a win never fails the submission: errors are logged and
      the tracker's own work is rolled back.

REFERENCES:
    - app/services/signature_service.py (caller)
    - app/models.py (ExperimentResult, EmailExperiment)
"""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.models import ExperimentResult, SentEmail

logger = logging.getLogger(__name__)


FACEBOOK_SHARING_OPTIONS = "facebook sharing options"


class ExperimentTracker:

    def __init__(self, db: Session):
        self.db = db

    def win(self, group: str, option: str) -> bool:
        """Increment the win counter of `option` in `group` and commit.

        Returns False (after logging) when the win could not be stored.
        """
        try:
            self._increment(group, option)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[EXPERIMENTS] Failed to record win for {group}/{option}: {e}")
            return False

        logger.info(f"[EXPERIMENTS] Win recorded for {group}/{option}")
        return True

    def win_email_experiments(self, sent_email: SentEmail) -> int:
        """Record a win for every experiment choice made for `sent_email`.

        Returns the number of wins stored.
        """
        recorded = 0
        for experiment in list(sent_email.experiments):
            if self.win(experiment.key, experiment.choice):
                recorded += 1
        return recorded

    def _increment(self, group: str, option: str) -> None:
        updated = (
            self.db.query(ExperimentResult)
            .filter(ExperimentResult.group == group, ExperimentResult.option == option)
            .update({ExperimentResult.wins: ExperimentResult.wins + 1}, synchronize_session=False)
        )
        if updated:
            return

        savepoint = self.db.begin_nested()
        try:
            self.db.add(ExperimentResult(group=group, option=option, wins=1))
            self.db.flush()
            savepoint.commit()
        except IntegrityError:
            # Another submission created the row first
            savepoint.rollback()
            (
                self.db.query(ExperimentResult)
                .filter(ExperimentResult.group == group, ExperimentResult.option == option)
                .update({ExperimentResult.wins: ExperimentResult.wins + 1}, synchronize_session=False)
            )
