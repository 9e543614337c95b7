"""
Binder API endpoints.

Binder CRUD plus the card operations of one binder: open (reconcile),
add, place by hand, remove, switch game, page and notes. The caller is
identified by the X-User-Id header.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, Field

from tcgbinder.db.database import get_session_factory
from tcgbinder.models.card import EntrySource, Game, WorkingSetEntry
from tcgbinder.models.failure import BinderError, NotAuthenticated, NotFound
from tcgbinder.models.ledger import Binder
from tcgbinder.models.partition import ContainerPartition
from tcgbinder.services.reconciliation import ReconcileResult
from tcgbinder.services.workspace import RESERVED_OWNER_IDS, OwnerWorkspace, WorkspaceProvider

router = APIRouter(prefix="/binders", tags=["binders"])


# --- Request / response models ---


class BinderResponse(BaseModel):
    """A binder in the owner's registry."""

    id: str
    name: str
    game: Game | None = None
    color: str = "black"
    assigned_value: int = 1


class BinderCreateRequest(BaseModel):
    """Request model for creating a binder."""

    name: str = Field(default="", max_length=255, examples=["Straw Hat Crew"])
    game: Game | None = None
    color: str | None = Field(
        default=None,
        description="Binder color; unknown colors fall back to black",
        examples=["red"],
    )


class BinderUpdateRequest(BaseModel):
    """Request model for renaming and/or recoloring a binder."""

    name: str | None = Field(default=None, max_length=255)
    color: str | None = None


class DeleteResponse(BaseModel):
    """Response model for delete operations."""

    deleted: bool
    binder_ids: list[str] = Field(default_factory=list)
    message: str = ""


class CardEntryResponse(BaseModel):
    """One placed card copy."""

    instance_id: str
    catalog_id: str
    name: str
    game: Game
    source: EntrySource
    copy_ordinal: int
    page_index: int
    set_code: str | None = None
    rarity: str | None = None
    image_url: str | None = None
    price_market: float | None = None
    price_inventory: float | None = None
    attributes: dict[str, str] = Field(default_factory=dict)


class SubCollectionResponse(BaseModel):
    """One set of binder pages."""

    id: str
    name: str
    page_count: int
    page_cursor: int = 0
    entries: list[CardEntryResponse] = Field(default_factory=list)


class BinderCardsResponse(BaseModel):
    """A binder's working set after reconciliation."""

    binder_id: str
    game: Game
    display_name: str
    current_set_id: str | None = None
    total_entries: int = 0
    sets: list[SubCollectionResponse] = Field(default_factory=list)
    reconciled: bool = Field(
        default=False,
        description="False when the binder was already loaded this session",
    )
    missing_card_ids: list[str] = Field(
        default_factory=list,
        description="Owned card ids with no catalog entry; they are not shown",
    )


class AddCardRequest(BaseModel):
    """Request model for adding a catalog card."""

    card_id: str = Field(..., min_length=1, examples=["OP01-001"])
    game: Game | None = Field(
        default=None,
        description="Catalog to look the card up in; defaults to the binder's game",
    )


class ManualCardRequest(AddCardRequest):
    """Request model for placing a card by hand."""

    set_id: str | None = None


class AddCardResponse(BaseModel):
    binder_id: str
    card_id: str
    entries: list[CardEntryResponse] = Field(default_factory=list)


class RemoveCardResponse(BaseModel):
    binder_id: str
    instance_id: str
    removed: bool


class GameSwitchRequest(BaseModel):
    game: Game


class PageRequest(BaseModel):
    set_id: str
    page_index: int = Field(default=0, ge=0)


class NotesRequest(BaseModel):
    notes: str = Field(default="", max_length=5000)


class NotesResponse(BaseModel):
    binder_id: str
    card_id: str
    notes: str


# --- Dependencies ---


def http_error(e: BinderError) -> HTTPException:
    """Convert a known engine failure into an HTTP error with a FailureDetail body."""
    return HTTPException(status_code=e.status_code, detail=e.to_detail().model_dump(mode="json"))


def get_owner_id(x_user_id: Annotated[str | None, Header()] = None) -> str:
    """The signed-in owner; 401 when the header is missing or not a usable id."""
    owner_id = (x_user_id or "").strip()
    if not owner_id:
        raise http_error(NotAuthenticated("You need to be signed in to use binders."))
    if owner_id in RESERVED_OWNER_IDS:
        raise http_error(NotAuthenticated("That user id is not valid.", detail=owner_id))
    return owner_id


def get_workspace_provider(request: Request) -> WorkspaceProvider:
    provider = getattr(request.app.state, "workspaces", None)
    if provider is None:
        provider = WorkspaceProvider(get_session_factory())
        request.app.state.workspaces = provider
    return provider


def get_workspace(
    owner_id: Annotated[str, Depends(get_owner_id)],
    provider: Annotated[WorkspaceProvider, Depends(get_workspace_provider)],
) -> OwnerWorkspace:
    try:
        return provider.for_owner(owner_id)
    except ValueError as e:
        raise http_error(NotAuthenticated("That user id is not valid.", detail=str(e))) from e


Workspace = Annotated[OwnerWorkspace, Depends(get_workspace)]


# --- Response builders ---


def _binder_response(binder: Binder) -> BinderResponse:
    return BinderResponse(
        id=binder.id,
        name=binder.name,
        game=Game(binder.game) if binder.game else None,
        color=binder.color,
        assigned_value=binder.assigned_value,
    )


def _entry_response(entry: WorkingSetEntry) -> CardEntryResponse:
    card = entry.card
    return CardEntryResponse(
        instance_id=entry.instance_id,
        catalog_id=card.catalog_id,
        name=card.display_name,
        game=card.game,
        source=entry.source,
        copy_ordinal=entry.copy_ordinal,
        page_index=entry.page_index,
        set_code=card.set_code,
        rarity=card.rarity,
        image_url=card.image_url,
        price_market=card.price_market,
        price_inventory=card.price_inventory,
        attributes=dict(card.attributes),
    )


def _load_partition(workspace: OwnerWorkspace, binder: Binder) -> ContainerPartition:
    """The binder's local layout, created for its registered game if missing."""
    return workspace.reconciler.store.load(binder.id, Game(binder.game) if binder.game else None)


def _cards_response(
    partition: ContainerPartition, page_size: int, result: ReconcileResult | None
) -> BinderCardsResponse:
    return BinderCardsResponse(
        binder_id=partition.container_id,
        game=partition.selected_game,
        display_name=partition.display_name,
        current_set_id=partition.current_set_id,
        total_entries=partition.total_entries(),
        sets=[
            SubCollectionResponse(
                id=sub.id,
                name=sub.name,
                page_count=len(sub.pages(page_size)),
                page_cursor=partition.page_cursor_by_set.get(sub.id, 0),
                entries=[_entry_response(entry) for entry in sub.entries],
            )
            for sub in partition.sets
        ],
        reconciled=result is not None,
        missing_card_ids=list(result.missing_card_ids) if result else [],
    )


async def _switch_game(
    workspace: OwnerWorkspace, binder_id: str, game: Game
) -> ReconcileResult | None:
    result = await workspace.reconciler.switch_game(binder_id, game)
    await workspace.registry.set_binder_game(binder_id, game)
    return result


# --- Binder registry ---


@router.get("", response_model=list[BinderResponse])
async def list_binders(workspace: Workspace) -> list[BinderResponse]:
    """List the owner's binders in creation order."""
    try:
        binders = await workspace.registry.list_binders()
    except BinderError as e:
        raise http_error(e) from e
    return [_binder_response(binder) for binder in binders]


@router.post("", response_model=BinderResponse, status_code=status.HTTP_201_CREATED)
async def create_binder(request: BinderCreateRequest, workspace: Workspace) -> BinderResponse:
    """Create a binder. A blank name becomes "My Binder"."""
    try:
        binder = await workspace.registry.create_binder(request.name, request.game, request.color)
    except BinderError as e:
        raise http_error(e) from e
    return _binder_response(binder)


@router.get("/{binder_id}", response_model=BinderResponse)
async def get_binder(binder_id: str, workspace: Workspace) -> BinderResponse:
    try:
        binder = await workspace.registry.get_binder(binder_id)
    except BinderError as e:
        raise http_error(e) from e
    return _binder_response(binder)


@router.patch("/{binder_id}", response_model=BinderResponse)
async def update_binder(
    binder_id: str, request: BinderUpdateRequest, workspace: Workspace
) -> BinderResponse:
    """Rename and/or recolor a binder."""
    try:
        binder = await workspace.registry.get_binder(binder_id)
        if request.name is not None:
            binder = await workspace.registry.rename_binder(binder_id, request.name)
            workspace.reconciler.rename(binder_id, binder.name)
        if request.color is not None:
            binder = await workspace.registry.recolor_binder(binder_id, request.color)
    except BinderError as e:
        raise http_error(e) from e
    return _binder_response(binder)


@router.delete("/{binder_id}", response_model=DeleteResponse)
async def delete_binder(binder_id: str, workspace: Workspace) -> DeleteResponse:
    """Delete a binder, its ledger rows and its local layout."""
    try:
        deleted = await workspace.registry.delete_binder(binder_id)
    except BinderError as e:
        raise http_error(e) from e

    if not deleted:
        raise http_error(NotFound("Binder not found.", detail=f"binder={binder_id}"))
    workspace.reconciler.forget_container(binder_id)
    return DeleteResponse(deleted=True, binder_ids=[binder_id], message="Binder deleted.")


@router.delete("", response_model=DeleteResponse)
async def clear_all_binders(workspace: Workspace) -> DeleteResponse:
    """
    Delete every binder of the owner.

    Irreversible: ledger rows, local layouts and preferences all go.
    """
    try:
        binder_ids = await workspace.registry.clear_all_binders()
    except BinderError as e:
        raise http_error(e) from e

    workspace.reconciler.clear_all_data()
    if binder_ids:
        message = f"Deleted {len(binder_ids)} binder(s)."
    else:
        message = "No binders found to delete."
    return DeleteResponse(deleted=bool(binder_ids), binder_ids=binder_ids, message=message)


# --- Binder cards ---


@router.get("/{binder_id}/cards", response_model=BinderCardsResponse)
async def open_binder(
    binder_id: str,
    workspace: Workspace,
    game: Game | None = None,
    force_refresh: bool = False,
) -> BinderCardsResponse:
    """
    Open a binder and reconcile it against the ledger.

    Reconciliation runs once per binder and game per session unless
    force_refresh is set. Passing a game other than the binder's current
    one switches the binder to that game.
    """
    reconciler = workspace.reconciler
    try:
        binder = await workspace.registry.get_binder(binder_id)
        partition = _load_partition(workspace, binder)

        if game is not None and partition.selected_game is not game:
            result = await _switch_game(workspace, binder_id, game)
        elif reconciler.active_container != binder_id:
            result = await reconciler.switch_container(
                binder_id, partition.selected_game, force_refresh
            )
        else:
            result = await reconciler.reconcile(binder_id, partition.selected_game, force_refresh)
    except BinderError as e:
        raise http_error(e) from e

    return _cards_response(reconciler.store.load(binder_id), reconciler.page_size, result)


@router.put("/{binder_id}/game", response_model=BinderCardsResponse)
async def switch_binder_game(
    binder_id: str, request: GameSwitchRequest, workspace: Workspace
) -> BinderCardsResponse:
    """Re-purpose a binder for another game and reconcile it."""
    reconciler = workspace.reconciler
    try:
        _load_partition(workspace, await workspace.registry.get_binder(binder_id))
        result = await _switch_game(workspace, binder_id, request.game)
    except BinderError as e:
        raise http_error(e) from e
    return _cards_response(reconciler.store.load(binder_id), reconciler.page_size, result)


@router.post(
    "/{binder_id}/cards",
    response_model=AddCardResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_card(
    binder_id: str, request: AddCardRequest, workspace: Workspace
) -> AddCardResponse:
    """Add one owned copy of a catalog card; the ledger is updated first."""
    reconciler = workspace.reconciler
    try:
        binder = await workspace.registry.get_binder(binder_id)
        game = request.game or _load_partition(workspace, binder).selected_game
        cards = await reconciler.ledger.batch_fetch_details([request.card_id], game)
        if not cards:
            raise NotFound(
                "That card is not in the catalog.",
                detail=f"game={game.value} card={request.card_id}",
            )
        entries = await reconciler.add_card(binder_id, cards[0])
    except BinderError as e:
        raise http_error(e) from e

    return AddCardResponse(
        binder_id=binder_id,
        card_id=request.card_id,
        entries=[_entry_response(entry) for entry in entries],
    )


@router.post(
    "/{binder_id}/cards/manual",
    response_model=AddCardResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_manual_card(
    binder_id: str, request: ManualCardRequest, workspace: Workspace
) -> AddCardResponse:
    """Place a catalog card by hand, without recording ownership."""
    reconciler = workspace.reconciler
    try:
        binder = await workspace.registry.get_binder(binder_id)
        game = request.game or _load_partition(workspace, binder).selected_game
        cards = await reconciler.ledger.batch_fetch_details([request.card_id], game)
        if not cards:
            raise NotFound(
                "That card is not in the catalog.",
                detail=f"game={game.value} card={request.card_id}",
            )
        entry = await reconciler.add_manual_card(binder_id, cards[0], request.set_id)
    except BinderError as e:
        raise http_error(e) from e

    return AddCardResponse(
        binder_id=binder_id, card_id=request.card_id, entries=[_entry_response(entry)]
    )


@router.delete("/{binder_id}/cards/{instance_id:path}", response_model=RemoveCardResponse)
async def remove_card(binder_id: str, instance_id: str, workspace: Workspace) -> RemoveCardResponse:
    """Remove one placed copy. Owned copies are decremented in the ledger."""
    try:
        _load_partition(workspace, await workspace.registry.get_binder(binder_id))
        removed = await workspace.reconciler.remove_card(binder_id, instance_id)
    except BinderError as e:
        raise http_error(e) from e

    if not removed:
        raise http_error(NotFound("Card not found in this binder.", detail=instance_id))
    return RemoveCardResponse(binder_id=binder_id, instance_id=instance_id, removed=True)


@router.put("/{binder_id}/page", response_model=BinderCardsResponse)
async def set_page(
    binder_id: str, request: PageRequest, workspace: Workspace
) -> BinderCardsResponse:
    reconciler = workspace.reconciler
    try:
        _load_partition(workspace, await workspace.registry.get_binder(binder_id))
        if reconciler.sub_collection(binder_id, request.set_id) is None:
            raise NotFound("Set not found in this binder.", detail=f"set={request.set_id}")
    except BinderError as e:
        raise http_error(e) from e

    reconciler.set_page(binder_id, request.set_id, request.page_index)
    return _cards_response(reconciler.store.load(binder_id), reconciler.page_size, None)


# --- Notes ---


@router.get("/{binder_id}/notes/{card_id}", response_model=NotesResponse)
async def get_notes(binder_id: str, card_id: str, workspace: Workspace) -> NotesResponse:
    try:
        await workspace.registry.get_binder(binder_id)
        notes = await workspace.reconciler.ledger.get_notes(binder_id, card_id)
    except BinderError as e:
        raise http_error(e) from e
    return NotesResponse(binder_id=binder_id, card_id=card_id, notes=notes)


@router.put("/{binder_id}/notes/{card_id}", response_model=NotesResponse)
async def save_notes(
    binder_id: str, card_id: str, request: NotesRequest, workspace: Workspace
) -> NotesResponse:
    """Store notes on an owned card; 404 when the binder does not own it."""
    try:
        await workspace.registry.get_binder(binder_id)
        await workspace.reconciler.ledger.save_notes(binder_id, card_id, request.notes)
    except BinderError as e:
        raise http_error(e) from e
    return NotesResponse(binder_id=binder_id, card_id=card_id, notes=request.notes)
