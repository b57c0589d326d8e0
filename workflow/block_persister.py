"""Turns unit prose into ordered paragraph blocks."""

import logging

from config.exceptions import BlockPersistError
from models.chapter import Block
from models.database import Database
from tools.text_utils import split_into_paragraphs

logger = logging.getLogger(__name__)


class BlockPersister:
    def __init__(self, db: Database):
        self.db = db

    def persist(
        self,
        chapter_id: int,
        unit_index: int,
        text: str,
        start_position: int,
        words: int,
    ) -> list[Block]:
        """Split prose on blank lines and commit it as the unit's blocks.

        The blocks, the chapter word count and the unit's done status land in
        one transaction.

        Raises:
            BlockPersistError: Nothing was written; the unit must be aborted.
        """
        paragraphs = split_into_paragraphs(text)
        if not paragraphs:
            raise BlockPersistError(chapter_id, "No paragraphs to persist")
        blocks = self.db.commit_unit(chapter_id, unit_index, paragraphs, start_position, words)
        logger.debug(
            "Chapter %d unit %d: persisted %d block(s) at positions %d-%d",
            chapter_id, unit_index, len(blocks), start_position, start_position + len(blocks) - 1,
        )
        return blocks
