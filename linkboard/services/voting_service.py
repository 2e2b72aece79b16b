"""Vote toggling: adds or removes one user's upvote on a post or comment."""

from dataclasses import dataclass

from linkboard.database import Database
from linkboard.exceptions import NotFoundError
from linkboard.logging_config import get_logger
from linkboard.models import SubjectKind
from linkboard.repository import SUBJECT_MODELS, LedgerRepository, is_row_id, subject_label

logger = get_logger(__name__)


@dataclass(frozen=True)
class VoteToggleResult:
    points: int
    is_upvoted: bool


class VoteToggleEngine:
    """Keeps a subject's ``points`` in lock-step with its upvote ledger."""

    def __init__(self, db: Database):
        self.db = db

    async def toggle_vote(
        self,
        kind: SubjectKind,
        subject_id: int,
        user_id: str,
    ) -> VoteToggleResult:
        """
        Toggle ``user_id``'s upvote on a subject.

        Runs in one transaction under exclusive access to the subject: an
        existing ledger row is deleted and points drop by one, otherwise a
        row is inserted and points rise by one. Raises NotFoundError when
        the subject does not exist; nothing is persisted in that case.
        """
        if not is_row_id(subject_id):
            raise NotFoundError(subject_label(kind), subject_id)

        async with self.db.transaction() as session:
            repo = LedgerRepository(session)
            async with repo.exclusive_access(kind, subject_id, user_id):
                existing = await repo.find_upvote(kind, subject_id, user_id)
                if existing is not None:
                    delta = -1
                    await repo.remove_upvote(kind, existing.id)
                else:
                    delta = 1
                    await repo.add_upvote(kind, subject_id, user_id)

                points = await repo.increment_counter(
                    SUBJECT_MODELS[kind], subject_id, "points", delta
                )
                if points is None:
                    raise NotFoundError(subject_label(kind), subject_id)

        logger.info(
            "vote_toggled",
            kind=kind.value,
            subject_id=subject_id,
            user_id=user_id,
            delta=delta,
            points=points,
        )
        return VoteToggleResult(points=points, is_upvoted=delta == 1)

    async def toggle_post_vote(self, post_id: int, user_id: str) -> VoteToggleResult:
        return await self.toggle_vote(SubjectKind.post, post_id, user_id)

    async def toggle_comment_vote(self, comment_id: int, user_id: str) -> VoteToggleResult:
        return await self.toggle_vote(SubjectKind.comment, comment_id, user_id)
