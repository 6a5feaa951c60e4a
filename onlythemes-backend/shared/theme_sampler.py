# shared/theme_sampler.py
"""
Random theme selection.

Both samplers scan the eligible themes (imageCaptured = true) in bounded
batches. One batch reads pages until the collection is exhausted, the
result cap is reached, or the time budget runs out, then picks one id
uniformly from what it read and hands back the continuation token of the
next unread page (None once the scan is complete).

sample_collection() keeps re-invoking a batch with the returned token until
the scan completes, folding each batch pick into a running choice weighted
by batch size, so the final id is uniform over the whole eligible set.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from azure.cosmos.exceptions import CosmosHttpResponseError, CosmosResourceExistsError

from . import config

ELIGIBLE_THEMES_QUERY = "SELECT VALUE c.id FROM c WHERE c.imageCaptured = true"

# Server-side body of getRandomTheme. Runs inside Cosmos DB's JS sandbox,
# so it only ever sees the logical partition it is executed against.
PROCEDURE_BODY = """function %(name)s(continuationToken) {
    var collection = getContext().getCollection();
    var pageSize = %(page_size)d;
    var maxResult = %(max_result)d;
    var filterQuery = "%(query)s";
    var result = [];
    var pagesRead = 0;

    tryQuery(continuationToken || null);

    function tryQuery(nextContinuationToken) {
        var options = { continuation: nextContinuationToken, pageSize: pageSize };
        // false means the host is close to its time budget; the client
        // resumes from nextContinuationToken on its next call.
        if (!collection.queryDocuments(collection.getSelfLink(), filterQuery, options, onReadDocuments)) {
            if (pagesRead === 0) {
                setStalled(nextContinuationToken);
            } else {
                setBody(nextContinuationToken);
            }
        }
    }

    function onReadDocuments(err, docFeed, responseOptions) {
        if (err) {
            throw new Error("Error while reading document: " + err.message);
        }
        pagesRead++;
        for (var i = 0; i < docFeed.length; i++) {
            result.push(docFeed[i]);
        }
        if (!responseOptions.continuation) {
            setBody(null);
        } else if (result.length >= maxResult) {
            setBody(responseOptions.continuation);
        } else {
            tryQuery(responseOptions.continuation);
        }
    }

    function setBody(token) {
        var randomId = result.length ? result[Math.floor(Math.random() * result.length)] : null;
        getContext().getResponse().setBody({
            randomId: randomId,
            count: result.length,
            continuationToken: token
        });
    }

    // refused before reading anything: neither a pick nor a completed scan
    function setStalled(token) {
        getContext().getResponse().setBody({
            randomId: null,
            count: 0,
            continuationToken: token,
            noProgress: true
        });
    }
}"""


class ProcedureInstallError(Exception):
    pass


class SamplingStalled(Exception):
    """The procedure host refused to read even one page of a batch."""

    def __init__(self, continuation_token: Optional[str]):
        super().__init__(f"getRandomTheme made no progress from token {continuation_token!r}")
        self.continuation_token = continuation_token


@dataclass(frozen=True)
class RandomSelection:
    random_id: Optional[str]
    count: int
    continuation_token: Optional[str]

    @property
    def exhausted(self) -> bool:
        return self.continuation_token is None


EMPTY_SELECTION = RandomSelection(random_id=None, count=0, continuation_token=None)


def procedure_definition(
    procedure_id: str = config.THEME_PROCEDURE_ID,
    page_size: int = config.THEME_PAGE_SIZE,
    max_result: int = config.THEME_RESULT_CAP,
) -> Dict[str, str]:
    body = PROCEDURE_BODY % {
        "name": procedure_id,
        "page_size": page_size,
        "max_result": max_result,
        "query": ELIGIBLE_THEMES_QUERY,
    }
    return {"id": procedure_id, "body": body}


def get_or_create_procedure(container, procedure_id: str = config.THEME_PROCEDURE_ID,
                            definition: Optional[Dict[str, str]] = None) -> str:
    """
    Install the procedure once, by name. An existing procedure is reused
    as-is, so changing its body means deleting it from the container first.
    """
    existing = container.scripts.list_stored_procedures()
    if any(p.get("id") == procedure_id for p in existing):
        return procedure_id

    definition = definition or procedure_definition(procedure_id)
    try:
        created = container.scripts.create_stored_procedure(body=definition)
    except CosmosResourceExistsError:
        # another instance installed it between our list and create
        logging.info("[sampler] procedure %s installed concurrently; reusing", procedure_id)
        return procedure_id
    except CosmosHttpResponseError as e:
        raise ProcedureInstallError(f"Could not install {procedure_id}: {e.message}") from e

    if not created or created.get("id") != procedure_id:
        raise ProcedureInstallError(f"Could not install {procedure_id}")
    logging.info("[sampler] installed procedure %s", procedure_id)
    return procedure_id


def select_batch(
    pages: Iterable[Tuple[List[str], Optional[str]]],
    cap: int = config.THEME_RESULT_CAP,
    rng: Optional[random.Random] = None,
    deadline: Optional[float] = None,
) -> RandomSelection:
    """
    One batch over `pages`, an iterable of (ids, next_continuation_token).
    `deadline` is a time.monotonic() value; at least one page is always read.
    """
    rng = rng or random
    accumulated: List[str] = []
    token = None
    for ids, token in pages:
        accumulated.extend(ids)
        if not token:
            token = None
            break
        if len(accumulated) >= cap:
            break
        if deadline is not None and time.monotonic() >= deadline:
            break
    else:
        token = None

    chosen = rng.choice(accumulated) if accumulated else None
    return RandomSelection(random_id=chosen, count=len(accumulated), continuation_token=token)


def merge_selections(current: RandomSelection, batch: RandomSelection,
                     rng: Optional[random.Random] = None) -> RandomSelection:
    """Weighted reservoir step: keep the batch pick with probability batch/total."""
    rng = rng or random
    total = current.count + batch.count
    chosen = current.random_id
    if batch.count and rng.randrange(total) < batch.count:
        chosen = batch.random_id
    return RandomSelection(random_id=chosen, count=total, continuation_token=batch.continuation_token)


def sample_collection(
    run_batch: Callable[[Optional[str]], RandomSelection],
    rng: Optional[random.Random] = None,
    max_batches: int = config.THEME_MAX_BATCHES,
) -> RandomSelection:
    selection = EMPTY_SELECTION
    token = None
    for _ in range(max(1, max_batches)):
        batch = run_batch(token)
        selection = merge_selections(selection, batch, rng)
        token = batch.continuation_token
        if token is None:
            return selection

    logging.warning(
        "[sampler] stopped after %d batches (%d themes seen); choice covers a prefix only",
        max_batches, selection.count,
    )
    return selection


def _as_selection(result: Any) -> RandomSelection:
    result = result or {}
    if result.get("noProgress"):
        raise SamplingStalled(result.get("continuationToken"))
    random_id = result.get("randomId")
    if isinstance(random_id, dict):
        # older procedure bodies returned the whole projected document
        random_id = random_id.get("id")
    return RandomSelection(
        random_id=random_id,
        count=int(result.get("count") or (1 if random_id else 0)),
        continuation_token=result.get("continuationToken") or None,
    )


class QueryThemeSampler:
    """Runs the batch loop in-process with a paginated cross-partition query."""

    def __init__(self, container, page_size: int = config.THEME_PAGE_SIZE,
                 cap: int = config.THEME_RESULT_CAP,
                 batch_seconds: Optional[float] = config.THEME_BATCH_SECONDS,
                 max_batches: int = config.THEME_MAX_BATCHES,
                 rng: Optional[random.Random] = None):
        self._container = container
        self._page_size = page_size
        self._cap = cap
        self._batch_seconds = batch_seconds
        self._max_batches = max_batches
        self._rng = rng or random.Random()

    def install(self) -> None:
        pass

    def _pages(self, continuation_token: Optional[str]):
        pager = self._container.query_items(
            query=ELIGIBLE_THEMES_QUERY,
            enable_cross_partition_query=True,
            max_item_count=self._page_size,
        ).by_page(continuation_token)
        for page in pager:
            ids = list(page)
            yield ids, pager.continuation_token

    def run_batch(self, continuation_token: Optional[str] = None) -> RandomSelection:
        deadline = None
        if self._batch_seconds:
            deadline = time.monotonic() + self._batch_seconds
        return select_batch(self._pages(continuation_token), cap=self._cap,
                            rng=self._rng, deadline=deadline)

    def choose_theme_id(self) -> Optional[str]:
        return sample_collection(self.run_batch, self._rng, self._max_batches).random_id


class ProcedureThemeSampler:
    """Executes getRandomTheme against one logical partition of the themes container."""

    def __init__(self, container, partition_key: Any,
                 procedure_id: str = config.THEME_PROCEDURE_ID,
                 page_size: int = config.THEME_PAGE_SIZE,
                 cap: int = config.THEME_RESULT_CAP,
                 max_batches: int = config.THEME_MAX_BATCHES,
                 rng: Optional[random.Random] = None):
        self._container = container
        self._partition_key = partition_key
        self._procedure_id = procedure_id
        self._definition = procedure_definition(procedure_id, page_size, cap)
        self._max_batches = max_batches
        self._rng = rng or random.Random()
        self._installed = False

    def install(self) -> None:
        get_or_create_procedure(self._container, self._procedure_id, self._definition)
        self._installed = True

    def run_batch(self, continuation_token: Optional[str] = None) -> RandomSelection:
        if not self._installed:
            self.install()
        result = self._container.scripts.execute_stored_procedure(
            sproc=self._procedure_id,
            partition_key=self._partition_key,
            params=[continuation_token],
        )
        return _as_selection(result)

    def choose_theme_id(self) -> Optional[str]:
        return sample_collection(self.run_batch, self._rng, self._max_batches).random_id


def build_sampler(container, mode: str = config.THEME_SAMPLER,
                  partition_key: Any = config.THEME_PROCEDURE_PARTITION):
    if mode == "procedure":
        if partition_key is None:
            raise ValueError("THEME_PROCEDURE_PARTITION is required when THEME_SAMPLER=procedure")
        return ProcedureThemeSampler(container, partition_key)
    if mode != "query":
        raise ValueError(f"Unknown THEME_SAMPLER {mode!r}; expected 'query' or 'procedure'")
    return QueryThemeSampler(container)
