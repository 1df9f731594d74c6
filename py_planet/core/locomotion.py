"""
First-person locomotion around planets.

Two mutually exclusive modes:

- ``FLY``: free 6-DOF flight. Look input rotates a free basis directly,
  gravity is ignored and velocity coasts under drag in every direction.
- ``WALK``: the body's up axis is smoothly aligned with the local gravity
  field. Look input is kept as yaw/pitch offsets on top of that
  gravity-aligned basis, movement is constrained to the tangent plane and
  gravity is integrated into velocity.

The cached reference basis (free basis in FLY, gravity-aligned basis in
WALK) is updated incrementally across frames and never rebuilt from
scratch, so switching modes or following a changing gravity field never
snaps the view.

Per-frame order in :meth:`LocomotionController.update`:

1. sum gravity from every registered planet
2. derive the up direction (world-up when gravity is negligible)
3. WALK: rotate the aligned basis toward up, integrate gravity, compose
   yaw then pitch on top; FLY: use the free basis as is
4. build the input direction from the final basis
5. WALK: jump when ``up`` is newly pressed while grounded
6. exponential friction
7. hand velocity and up axis to the rigid-body solver, keep its result
8. publish the final basis
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

import numpy as np
import structlog

from . import basis as b
from .gravity import PlanetGravitySource, total_gravity
from .solver import RigidBodySolver

logger = structlog.get_logger()

# Gravity weaker than this has no usable direction
GRAVITY_EPSILON = 1e-3

# Angle (radians) below which the aligned basis is considered on target
ALIGNMENT_EPSILON = 1e-6


class CameraMode(str, Enum):
    """Locomotion modes."""

    FLY = "fly"
    WALK = "walk"


@dataclass
class LocomotionOptions:
    """Tunables for the locomotion controller."""

    fly_acceleration: float = 120.0  # units/s^2 along the input direction
    walk_acceleration: float = 10.0
    mouse_sensitivity: float = 0.003  # radians per unit of mouse motion
    min_pitch: float = -89.0  # degrees, must stay inside (-90, 90)
    max_pitch: float = 89.0
    jump_velocity: float = 5.0
    alignment_speed: float = 2.0  # fraction of the remaining angle per second
    min_gravity_for_alignment: float = 0.01
    walk_friction: float = 0.03  # tangential speed kept after one second
    fly_friction: float = 0.05  # speed kept after one second of flight
    floor_max_angle: float = 45.0  # degrees

    def __post_init__(self):
        if not -90.0 < self.min_pitch < self.max_pitch < 90.0:
            raise ValueError(
                f"Pitch limits must satisfy -90 < min < max < 90, "
                f"got min={self.min_pitch}, max={self.max_pitch}"
            )
        for name in ("walk_friction", "fly_friction"):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ValueError(f"{name} must be in (0, 1], got {value}")
        if self.alignment_speed < 0:
            raise ValueError(f"alignment_speed must be >= 0, got {self.alignment_speed}")

    @property
    def pitch_limits(self):
        return math.radians(self.min_pitch), math.radians(self.max_pitch)


@dataclass
class MovementInput:
    """
    Actions held this frame.

    ``up`` and ``down`` move along the view Y axis in FLY. In WALK, ``up``
    jumps on the frame it goes from released to held.
    """

    forward: bool = False
    backward: bool = False
    left: bool = False
    right: bool = False
    up: bool = False
    down: bool = False


@dataclass
class LocomotionState:
    """Mutable controller state carried from frame to frame."""

    mode: CameraMode = CameraMode.FLY
    position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(3))
    yaw: float = 0.0
    pitch: float = 0.0
    free_basis: np.ndarray = field(default_factory=b.identity)
    gravity_basis: np.ndarray = field(default_factory=b.identity)
    basis: np.ndarray = field(default_factory=b.identity)  # last published rotation
    grounded: bool = False
    up_held: bool = False  # ``up`` state of the previous frame


@dataclass
class FrameResult:
    """What one update produced."""

    basis: np.ndarray
    position: np.ndarray
    velocity: np.ndarray
    up_direction: np.ndarray
    total_gravity: np.ndarray
    grounded: bool


class LocomotionController:
    """
    Fly/walk controller driven by an owning application loop.

    Args:
        gravity_sources: Planet id -> gravity source, consulted every frame
        solver: Rigid-body solver resolving collisions
        options: Tunables
        state: Initial state (position, mode, bases); defaults to FLY at
            the origin with identity orientation
    """

    def __init__(
        self,
        gravity_sources: Mapping[str, PlanetGravitySource],
        solver: RigidBodySolver,
        options: Optional[LocomotionOptions] = None,
        state: Optional[LocomotionState] = None,
    ):
        self.gravity_sources = gravity_sources
        self.solver = solver
        self.options = options or LocomotionOptions()
        self.state = state or LocomotionState()
        self._warned_no_gravity = False

    @property
    def mode(self) -> CameraMode:
        return self.state.mode

    # Mode switching

    def set_mode(self, mode: CameraMode) -> None:
        """
        Switch modes without a visible snap.

        FLY -> WALK captures the free basis as the gravity-aligned basis and
        zeroes the look offsets. WALK -> FLY captures the composed walk
        basis as the new free basis; the yaw is baked into it, the pitch is
        kept so the clamp still measures from the same horizon.
        """
        mode = CameraMode(mode)
        state = self.state
        if mode == state.mode:
            return

        if mode == CameraMode.WALK:
            state.gravity_basis = state.free_basis.copy()
            state.yaw = 0.0
            state.pitch = 0.0
            state.basis = state.gravity_basis.copy()
        else:
            state.free_basis = self.composed_basis()
            state.yaw = 0.0
            state.basis = state.free_basis.copy()

        state.mode = mode
        logger.info("Camera mode changed", mode=mode.value)

    def toggle_mode(self) -> CameraMode:
        self.set_mode(CameraMode.WALK if self.state.mode == CameraMode.FLY else CameraMode.FLY)
        return self.state.mode

    # Look input

    def apply_look(self, dx: float, dy: float) -> None:
        """
        Apply relative mouse motion.

        In FLY the rotation is applied to the free basis immediately (yaw
        about its own Y, then pitch about its own X). In WALK only the
        yaw/pitch offsets change; they are composed at the next update.
        Accumulated pitch is clamped to the configured limits in both modes.
        """
        state = self.state
        yaw_delta = -dx * self.options.mouse_sensitivity
        min_pitch, max_pitch = self.options.pitch_limits
        new_pitch = min(max(state.pitch - dy * self.options.mouse_sensitivity, min_pitch), max_pitch)
        pitch_delta = new_pitch - state.pitch

        state.yaw = math.remainder(state.yaw + yaw_delta, 2.0 * math.pi)
        state.pitch = new_pitch

        if state.mode == CameraMode.FLY:
            free = b.rotate(state.free_basis, b.axis_y(state.free_basis), yaw_delta)
            free = self._safe_orthonormalize(free, "free")
            free = b.rotate(free, b.axis_x(free), pitch_delta)
            state.free_basis = self._safe_orthonormalize(free, "free")
            state.basis = state.free_basis.copy()

    # Orientation

    def composed_basis(self) -> np.ndarray:
        """Basis the body would render with right now."""
        if self.state.mode == CameraMode.FLY:
            return self.state.free_basis.copy()
        return self._compose_walk_basis(
            self._safe_orthonormalize(self.state.gravity_basis, "gravity-aligned")
        )

    def _compose_walk_basis(self, aligned: np.ndarray) -> np.ndarray:
        """Yaw about the aligned up axis, then pitch about the yawed right axis."""
        state = self.state
        yaw_rotation = b.rotation_matrix(b.axis_y(aligned), state.yaw)
        rotated_right = yaw_rotation @ b.axis_x(aligned)
        pitch_rotation = b.rotation_matrix(rotated_right, state.pitch)

        return self._safe_orthonormalize(pitch_rotation @ yaw_rotation @ aligned, "composed")

    def _align_to_gravity(self, gravity: np.ndarray, dt: float) -> None:
        """Rotate the aligned basis's Y axis part of the way toward -gravity."""
        magnitude = float(np.linalg.norm(gravity))
        if magnitude < self.options.min_gravity_for_alignment:
            return

        state = self.state
        target_up = -gravity / magnitude
        current_up = b.axis_y(state.gravity_basis)
        angle = b.angle_between(current_up, target_up)
        if angle < ALIGNMENT_EPSILON:
            return

        axis = np.cross(current_up, target_up)
        if np.linalg.norm(axis) < b.AXIS_EPSILON:
            # Up is exactly opposite to gravity's up: any horizontal axis works
            axis = b.axis_x(state.gravity_basis)

        step = angle * min(1.0, self.options.alignment_speed * dt)
        rotated = b.rotate(state.gravity_basis, axis, step)
        state.gravity_basis = self._safe_orthonormalize(rotated, "gravity-aligned")

    def _safe_orthonormalize(self, basis: np.ndarray, name: str) -> np.ndarray:
        try:
            return b.orthonormalize(basis)
        except b.DegenerateBasisError as exc:
            logger.warning("Degenerate basis, resetting to identity", basis=name, error=str(exc))
            return b.identity()

    # Frame update

    def update(self, dt: float, movement: Optional[MovementInput] = None) -> FrameResult:
        """
        Advance the controller by one physics step.

        Args:
            dt: Step length in seconds
            movement: Actions for this step (nothing pressed if omitted)

        Returns:
            FrameResult with the published basis and the solver's position
            and velocity
        """
        movement = movement or MovementInput()
        state = self.state
        options = self.options
        walking = state.mode == CameraMode.WALK

        gravity = total_gravity(self.gravity_sources.values(), state.position)
        magnitude = float(np.linalg.norm(gravity))
        if magnitude > GRAVITY_EPSILON:
            up = -gravity / magnitude
        else:
            up = b.WORLD_UP.copy()

        if walking:
            if not self.gravity_sources and not self._warned_no_gravity:
                logger.warning("Walk mode without gravity sources, using world up")
                self._warned_no_gravity = True
            state.gravity_basis = self._safe_orthonormalize(state.gravity_basis, "gravity-aligned")
            self._align_to_gravity(gravity, dt)
            state.velocity = state.velocity + gravity * dt
            final = self._compose_walk_basis(state.gravity_basis)
        else:
            final = state.free_basis.copy()

        direction = self._input_direction(final, movement, up, walking)
        jump_pressed = movement.up and not state.up_held
        state.up_held = movement.up

        if walking:
            state.velocity = state.velocity + direction * options.walk_acceleration * dt
            if jump_pressed and state.grounded:
                state.velocity = state.velocity + up * options.jump_velocity
            vertical = np.dot(state.velocity, up) * up
            horizontal = (state.velocity - vertical) * options.walk_friction ** dt
            state.velocity = horizontal + vertical
        else:
            state.velocity = state.velocity + direction * options.fly_acceleration * dt
            state.velocity = state.velocity * options.fly_friction ** dt

        result = self.solver.move_and_slide(
            state.position,
            state.velocity,
            up,
            math.radians(options.floor_max_angle),
            dt,
        )
        state.velocity = np.asarray(result.velocity, dtype=np.float64).copy()
        state.position = np.asarray(result.position, dtype=np.float64).copy()
        state.grounded = bool(result.grounded)
        state.basis = final

        return FrameResult(
            basis=final.copy(),
            position=state.position.copy(),
            velocity=state.velocity.copy(),
            up_direction=up,
            total_gravity=gravity,
            grounded=state.grounded,
        )

    @staticmethod
    def _input_direction(
        final: np.ndarray, movement: MovementInput, up: np.ndarray, walking: bool
    ) -> np.ndarray:
        direction = np.zeros(3)
        if movement.forward:
            direction -= b.axis_z(final)
        if movement.backward:
            direction += b.axis_z(final)
        if movement.left:
            direction -= b.axis_x(final)
        if movement.right:
            direction += b.axis_x(final)

        if walking:
            # Stay in the tangent plane
            direction -= np.dot(direction, up) * up
        else:
            if movement.up:
                direction += b.axis_y(final)
            if movement.down:
                direction -= b.axis_y(final)

        length = np.linalg.norm(direction)
        if length < 1e-9:
            return np.zeros(3)
        return direction / length
