"""Generation Orchestrator: regenerate the code whenever inputs change.

One asyncio event loop owns all state here. Every relevant input change
issues a new request with a higher sequence number; a finished request is
published only when its sequence is still the latest one, so slow matrix
encodes that were overtaken by later edits never reach the view.
"""

import asyncio
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Awaitable, Callable

from PIL import Image

from qrcard.errors import TokenCapacityError
from qrcard.generator import generate_linear, generate_matrix_async
from qrcard.logging import audit, get_logger
from qrcard.modes import CARD_BASE_URL, LabelOptions, Mode, ResolvedPayload, resolve
from qrcard.records import Record

log = get_logger("orchestrator")

MIN_SIZE = 140
MAX_SIZE = 800
DEFAULT_SIZE = 260

# Longest card URL we hand to the QR encoder (ECC M stays comfortably scannable)
MAX_TOKEN_PAYLOAD = 2000

ERROR_MESSAGES = {
    Mode.MATRIX: "QR yaratishda xatolik: {error}",
    Mode.LINEAR: "Barcode yaratishda xatolik: {error}",
}

MatrixGenerator = Callable[..., Awaitable[Image.Image]]
LinearGenerator = Callable[..., Image.Image]


def normalize_size(value: Any) -> int:
    """Clamp ``value`` into [140, 800]; non-numeric (or zero) input becomes 260."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return DEFAULT_SIZE
    if number != number or not number:  # NaN, 0
        return DEFAULT_SIZE
    return int(min(MAX_SIZE, max(MIN_SIZE, number)))


class State(Enum):
    IDLE = "idle"
    PENDING = "pending"
    FULFILLED = "fulfilled"
    FAILED = "failed"


@dataclass(frozen=True)
class InputSnapshot:
    """Everything the input form contributes to one generation."""
    records: tuple[Record, ...] = ()
    mode: Mode = Mode.MATRIX
    size: Any = DEFAULT_SIZE
    card_mode: bool = False
    show_label: bool = False
    label: str = ""
    base_url: str = CARD_BASE_URL

    @classmethod
    def of(cls, records, **kwargs) -> "InputSnapshot":
        mode = kwargs.pop("mode", Mode.MATRIX)
        return cls(records=tuple(records), mode=Mode.parse(mode), **kwargs)


@dataclass(frozen=True)
class GenerationRequest:
    sequence: int
    payload: str
    mode: Mode
    size: int
    card_mode: bool
    label: LabelOptions
    ecc: str | None


@dataclass(frozen=True)
class GenerationResult:
    sequence: int
    image: Image.Image | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class GenerationView:
    """What the preview pane shows. One image slot per mode."""
    state: State = State.IDLE
    mode: Mode = Mode.MATRIX
    images: dict[Mode, Image.Image | None] = field(default_factory=lambda: {m: None for m in Mode})
    error: str = ""
    payload: str = ""

    @property
    def image(self) -> Image.Image | None:
        return self.images[self.mode]

    @property
    def is_ready(self) -> bool:
        return self.image is not None


class GenerationOrchestrator:
    """Reactive controller turning input snapshots into published codes.

    Args:
        matrix_generator: ``async (payload, size, ecc) -> Image``.
        linear_generator: ``(payload, size, show_label, label) -> Image``.
        on_publish: Called with the view after every state change.
    """

    def __init__(
        self,
        matrix_generator: MatrixGenerator = generate_matrix_async,
        linear_generator: LinearGenerator = generate_linear,
        on_publish: Callable[[GenerationView], None] | None = None,
        max_token_payload: int = MAX_TOKEN_PAYLOAD,
    ):
        self.matrix_generator = matrix_generator
        self.linear_generator = linear_generator
        self.on_publish = on_publish
        self.max_token_payload = max_token_payload
        self.view = GenerationView()
        self.size = DEFAULT_SIZE
        self.sequence = 0
        self.current: GenerationRequest | None = None
        self._last: InputSnapshot | None = None
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> State:
        return self.view.state

    def _publish(self):
        if self.on_publish is None:
            return
        try:
            self.on_publish(self.view)
        except Exception:
            log.exception("on_publish callback failed")

    def on_inputs_changed(self, snapshot: InputSnapshot) -> GenerationRequest | None:
        """Apply a new input snapshot; return the issued request, if any.

        Matrix requests are scheduled on the running event loop; without one
        the request fails like any other generation fault.
        """
        size = normalize_size(snapshot.size)
        snapshot = replace(snapshot, size=size, mode=Mode.parse(snapshot.mode),
                           records=tuple(snapshot.records))
        if snapshot == self._last:
            return self.current
        previous, self._last = self._last, snapshot

        if previous is not None and previous.mode is not snapshot.mode:
            self.view.images[previous.mode] = None
            audit("generation.mode_switched", logger=log,
                  left=previous.mode.value, entered=snapshot.mode.value)
        self.view.mode = snapshot.mode
        self.view.error = ""

        resolved = resolve(
            snapshot.mode, snapshot.card_mode, list(snapshot.records),
            show_label=snapshot.show_label, label=snapshot.label,
            base_url=snapshot.base_url,
        )
        if resolved.is_empty:
            return self._go_idle()

        self.size = size
        self._issue(resolved)
        return self.current

    def _go_idle(self) -> None:
        # Bumping the sequence also orphans any request still in flight
        self.sequence += 1
        self.current = None
        self.view.state = State.IDLE
        self.view.images = {m: None for m in Mode}
        self.view.error = ""
        self.view.payload = ""
        audit("generation.idle", logger=log, sequence=self.sequence)
        self._publish()

    def _issue(self, resolved: ResolvedPayload):
        self.sequence += 1
        request = GenerationRequest(
            sequence=self.sequence,
            payload=resolved.payload,
            mode=resolved.mode,
            size=self.size,
            card_mode=resolved.card_mode,
            label=resolved.label,
            ecc=resolved.ecc,
        )
        self.current = request
        self.view.state = State.PENDING
        self.view.payload = request.payload
        audit("generation.requested", logger=log,
              sequence=request.sequence, mode=request.mode.value,
              size=request.size, card_mode=request.card_mode, payload_len=len(request.payload))

        if request.mode is Mode.LINEAR:
            self._apply(self._run_linear(request))
        else:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as e:
                self._apply(self._failure(request, e))
                return
            self._task = loop.create_task(self._run_matrix(request))

    def _run_linear(self, request: GenerationRequest) -> GenerationResult:
        try:
            image = self.linear_generator(
                request.payload, request.size,
                show_label=request.label.show, label=request.label.text,
            )
        except Exception as e:
            return self._failure(request, e)
        return GenerationResult(sequence=request.sequence, image=image)

    async def _run_matrix(self, request: GenerationRequest) -> GenerationResult:
        try:
            if request.card_mode and len(request.payload) > self.max_token_payload:
                raise TokenCapacityError(len(request.payload), self.max_token_payload)
            image = await self.matrix_generator(request.payload, request.size, request.ecc)
        except Exception as e:
            result = self._failure(request, e)
        else:
            result = GenerationResult(sequence=request.sequence, image=image)
        self._apply(result)
        return result

    def _failure(self, request: GenerationRequest, error: Exception) -> GenerationResult:
        log.warning("generation %d (%s) failed: %s", request.sequence, request.mode.value, error)
        message = ERROR_MESSAGES[request.mode].format(error=error)
        return GenerationResult(sequence=request.sequence, error=message)

    def _apply(self, result: GenerationResult) -> bool:
        """Publish ``result`` unless a newer request has been issued since."""
        if self.current is None or result.sequence != self.current.sequence:
            audit("generation.discarded", logger=log, sequence=result.sequence, latest=self.sequence)
            return False

        mode = self.current.mode
        if result.ok:
            self.view.images[mode] = result.image
            self.view.state = State.FULFILLED
            self.view.error = ""
        else:
            self.view.images[mode] = None
            self.view.state = State.FAILED
            self.view.error = result.error
        audit("generation.published", logger=log,
              sequence=result.sequence, mode=mode.value, state=self.view.state.value)
        self._publish()
        return True

    async def settle(self) -> GenerationView:
        """Wait for the latest in-flight matrix request, then return the view."""
        while self._task is not None and not self._task.done():
            await self._task
        return self.view
