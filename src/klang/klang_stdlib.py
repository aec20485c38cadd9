"""
Built-in importable libraries for KLang programs.

Libraries are plain name -> value/function mappings. The interpreter treats them as
opaque: functions are called positionally and their results are passed through
unchanged (vectors come back as `{"x", "y", "z"}` dictionaries).

Libraries:
    klang-math: arithmetic, rounding, clamping, seeded random numbers, degree-based
        trigonometry, interpolation, and small vector helpers.
    klang-physics: classical mechanics, fluid helpers, and force vectors.

Each call to `default_libraries()` builds fresh mappings, so the random generator
state belongs to one module loader and runs stay reproducible.
"""

import math
from typing import Any

GRAVITY = 9.8
WATER_DENSITY = 1000.0
WATER_SURFACE_TENSION = 0.0728


class LinearCongruentialGenerator:
    """Small deterministic generator behind `klang-math.random`."""

    MODULUS = 4294967296
    MULTIPLIER = 1664525
    INCREMENT = 1013904223

    def __init__(self, seed: int = 12345) -> None:
        self.state = seed

    def seed(self, value: float) -> float:
        self.state = int(value)
        return value

    def next(self) -> float:
        self.state = (self.state * self.MULTIPLIER + self.INCREMENT) % self.MODULUS
        return self.state / self.MODULUS

    def random(self, low: float | None = None, high: float | None = None) -> float:
        r = abs(self.next())
        if low is not None and high is not None:
            return math.floor(r * (high - low + 1)) + low
        return r


def _vector(x: float, y: float, z: float) -> dict[str, float]:
    return {"x": x, "y": y, "z": z}


def _normalize(x: float, y: float, z: float) -> dict[str, float]:
    length = math.sqrt(x * x + y * y + z * z)
    if length == 0:
        return _vector(0, 0, 0)
    return _vector(x / length, y / length, z / length)


def _js_round(value: float) -> float:
    # Halves round up, as scene authors expect from `round(2.5) == 3`.
    return math.floor(value + 0.5)


def math_library(rng: LinearCongruentialGenerator | None = None) -> dict[str, Any]:
    """Builds the `klang-math` mapping."""
    rng = rng or LinearCongruentialGenerator()
    return {
        "abs": abs,
        "pow": math.pow,
        "sqrt": math.sqrt,
        "cbrt": lambda v: math.copysign(abs(v) ** (1 / 3), v),
        "round": _js_round,
        "floor": math.floor,
        "ceil": math.ceil,
        "trunc": math.trunc,
        "min": min,
        "max": max,
        "clamp": lambda v, low, high: min(max(v, low), high),
        "random": rng.random,
        "seed": rng.seed,
        "sin": lambda deg: math.sin(math.radians(deg)),
        "cos": lambda deg: math.cos(math.radians(deg)),
        "tan": lambda deg: math.tan(math.radians(deg)),
        "rad": math.degrees,
        "pi": math.pi,
        "e": math.e,
        "tau": math.tau,
        "infinity": math.inf,
        "lerp": lambda a, b, t: a + (b - a) * t,
        "map": lambda v, in_min, in_max, out_min, out_max: (
            (v - in_min) * (out_max - out_min) / (in_max - in_min) + out_min
        ),
        "distance": lambda x1, y1, z1, x2, y2, z2: math.sqrt(
            (x2 - x1) ** 2 + (y2 - y1) ** 2 + (z2 - z1) ** 2
        ),
        "normalize": _normalize,
        "percent": lambda p, total: (p / 100) * total,
        "ratio": lambda a, b, c: (c * a) / b,
    }


def _net_force(mass: float, volume: float, drag: float = 0) -> float:
    buoyancy = volume * WATER_DENSITY * GRAVITY
    weight = mass * GRAVITY
    return buoyancy - weight - drag


def _elastic_collision(m1: float, v1: float, m2: float, v2: float) -> dict[str, float]:
    total = m1 + m2
    return {
        "v1": ((m1 - m2) * v1 + 2 * m2 * v2) / total,
        "v2": ((2 * m1) * v1 + (m2 - m1) * v2) / total,
    }


def _buoyant_force_vector(volume: float, density: float, direction: dict) -> dict[str, float]:
    magnitude = volume * density * GRAVITY
    unit = _normalize(direction["x"], direction["y"], direction["z"])
    return _vector(magnitude * unit["x"], magnitude * unit["y"], magnitude * unit["z"])


def _drag_force_vector(density: float, velocity: dict, area: float, cd: float) -> dict[str, float]:
    vx, vy, vz = velocity["x"], velocity["y"], velocity["z"]
    speed = math.sqrt(vx * vx + vy * vy + vz * vz)
    if speed == 0:
        return _vector(0, 0, 0)
    magnitude = 0.5 * density * speed * speed * cd * area
    # Drag opposes the direction of motion
    return _vector(-vx / speed * magnitude, -vy / speed * magnitude, -vz / speed * magnitude)


def physics_library() -> dict[str, Any]:
    """Builds the `klang-physics` mapping."""
    return {
        "force": lambda m, a: m * a,
        "acceleration": lambda f, m: f / m,
        "momentum": lambda m, v: m * v,
        "kinetic": lambda m, v: 0.5 * m * v * v,
        "potential": lambda m, h, g=GRAVITY: m * g * h,
        "work": lambda f, d: f * d,
        "power": lambda w, t: w / t,
        "pressure": lambda f, a: f / a,
        "density": lambda m, v: m / v,
        "velocity": lambda d, t: d / t,
        "accel": lambda v2, v1, t: (v2 - v1) / t,
        "g": GRAVITY,
        "c": 299792458,
        "R": 8.314,
        "forceVector": lambda m, ax, ay, az: _vector(m * ax, m * ay, m * az),
        "distanceTraveled": lambda v0, a, t: v0 * t + 0.5 * a * t * t,
        "finalVelocity": lambda v0, a, t: v0 + a * t,
        "elasticCollision": _elastic_collision,
        "liquidDensity": WATER_DENSITY,
        "surfaceGamma": WATER_SURFACE_TENSION,
        "buoyantForce": lambda vol, density=WATER_DENSITY: vol * density * GRAVITY,
        "fluidPressure": lambda depth, density=WATER_DENSITY: density * GRAVITY * depth,
        "dragForce": lambda density, v, area, cd: 0.5 * density * v * v * cd * area,
        "displacement": lambda mass, density=WATER_DENSITY: mass / density,
        "surfaceTension": lambda length, gamma=WATER_SURFACE_TENSION: gamma * length,
        "netForce": _net_force,
        "netVerticalForce": _net_force,
        "flowSpeed": lambda rate, area: rate / area,
        "flowRate": lambda area, velocity: area * velocity,
        "flowVelocity": lambda area, rate: rate / area,
        "buoyantForceVector": _buoyant_force_vector,
        "dragForceVector": _drag_force_vector,
        "floatation": lambda mass, vol: (mass / vol) < WATER_DENSITY,
    }


def default_libraries(seed: int = 12345) -> dict[str, dict[str, Any]]:
    """Returns fresh copies of every built-in library keyed by import name."""
    return {
        "klang-math": math_library(LinearCongruentialGenerator(seed)),
        "klang-physics": physics_library(),
    }


__all__ = [
    "LinearCongruentialGenerator",
    "default_libraries",
    "math_library",
    "physics_library",
]
