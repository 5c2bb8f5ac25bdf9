"""
Card upsert pipeline.

Turns one extracted card into a stored document by walking a small state
machine:

    CHECKING -> CREATING -> DONE
    CHECKING -> DELETING -> CREATING -> DONE

Any store failure moves the item to FAILED. An existing document is deleted
and recreated wholesale rather than merged, so rows sharing a multiverse id
(split and double-faced cards) overwrite each other.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from cardscience.db.operations import destroy, find, save
from cardscience.db.store import DocumentStore
from cardscience.models.card import CARD_SCHEMA, RawCard, card_document
from cardscience.models.document import Document
from cardscience.models.failure import CardScienceError
from cardscience.models.schema import ModelSchema

logger = logging.getLogger(__name__)


class UpsertState(str, Enum):
    """Per-item pipeline states."""

    CHECKING = "checking"
    DELETING = "deleting"
    CREATING = "creating"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({UpsertState.DONE, UpsertState.FAILED})


@dataclass
class UpsertResult:
    """
    Outcome of one item.

    Attributes:
        doc_id: Derived document id
        state: Terminal state, DONE or FAILED
        transitions: Every state visited, in order
        replaced: Whether an existing document was deleted first
        document: The saved document (on success)
        error: The failure that ended the item (on failure)
    """

    doc_id: str
    state: UpsertState = UpsertState.CHECKING
    transitions: list[UpsertState] = field(default_factory=list)
    replaced: bool = False
    document: Document | None = None
    error: CardScienceError | None = None

    @property
    def failed(self) -> bool:
        return self.state is UpsertState.FAILED


class UpsertPipeline:
    """Replace-or-create cards in a document store."""

    def __init__(self, store: DocumentStore, schema: ModelSchema = CARD_SCHEMA) -> None:
        self.store = store
        self.schema = schema

    async def process(self, raw: RawCard) -> UpsertResult:
        """
        Store one card, replacing any existing document with its id.

        Never raises for store failures; they end the item in FAILED with
        the error attached to the result.
        """
        result = UpsertResult(doc_id=raw.document_id)
        logger.info("%s: %s", raw.external_id, raw.title)

        if not raw.cost_matches():
            logger.warning(
                "Mana cost %s of %s does not add up to converted cost %s",
                raw.mana_cost,
                raw.external_id,
                raw.converted_cost,
            )

        existing: Document | None = None
        state = UpsertState.CHECKING

        while state not in TERMINAL_STATES:
            result.transitions.append(state)
            try:
                if state is UpsertState.CHECKING:
                    existing = await find(self.store, self.schema, result.doc_id)
                    state = UpsertState.CREATING if existing is None else UpsertState.DELETING

                elif state is UpsertState.DELETING and existing is not None:
                    logger.info(
                        "Card with multiverse ID '%s' exists already, deleting.", raw.external_id
                    )
                    await destroy(self.store, existing)
                    result.replaced = True
                    state = UpsertState.CREATING

                elif state is UpsertState.CREATING:
                    doc = card_document(raw)
                    await save(self.store, self.schema, doc)
                    result.document = doc
                    logger.info("Successfully saved card: %s", raw.external_id)
                    state = UpsertState.DONE

            except CardScienceError as e:
                logger.error(
                    "Unable to upsert card %s while %s: %s", raw.external_id, state.value, e.reason
                )
                result.error = e
                state = UpsertState.FAILED

        result.transitions.append(state)
        result.state = state
        return result
