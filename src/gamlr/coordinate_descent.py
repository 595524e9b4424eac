"""Active-set coordinate descent for one penalty level."""

import warnings
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .context import PathContext
from .exceptions import GamlrWarning
from .families import weighted_intercept
from .gradient import GradientCurvature

EXIT_OK = 0
EXIT_WARNING = 1
EXIT_STOP = 2


@dataclass
class CDResult:
    """Outcome of :func:`cd_solve` at a single penalty level.

    Attributes
    ----------
    exit_code : int
        ``0`` converged, ``1`` iteration cap hit (iterate kept), ``2`` infinite
        likelihood (path must stop).
    npass : int
        Number of coordinate sweeps performed.
    nreweight : int
        Number of IRLS reweighting steps performed.
    """

    exit_code: int
    npass: int
    nreweight: int


def coordinate_move(ctx: PathContext, j: int) -> float:
    r"""Soft-thresholded Newton move for variable `j`.

    With :math:`\text{pen} = \lambda n w_j \omega_j` and
    :math:`g = G_j - H_j \beta_j`, the move is

    .. math::
        \Delta_j = \begin{cases}
            -\beta_j & |g| < \text{pen} \\
            -(G_j - \text{sign}(g)\,\text{pen}) / H_j & \text{otherwise}
        \end{cases}

    Unpenalized variables take the plain Newton step :math:`-G_j / H_j`, and a
    variable without curvature is sent back to zero.

    Parameters
    ----------
    ctx : PathContext
        Current run state; `G[j]` must be up to date.
    j : int
        Variable index.

    Returns
    -------
    float
        The change to apply to `B[j]`.
    """
    H, G, B = ctx.H[j], ctx.G[j], ctx.B[j]
    if H == 0:
        return -B

    if ctx.W[j] == 0.0:
        return -G / H

    pen = ctx.penalty(j)
    ghb = G - H * B
    if abs(ghb) < pen:
        return -B
    return -(G - np.sign(ghb) * pen) / H


def apply_move(ctx: PathContext, backend: GradientCurvature, j: int, dbet: float):
    """Add `dbet` to `B[j]` and keep the linear predictor and intercept in step."""
    ctx.B[j] += dbet
    if backend.updates_predictor:
        rows, vals = ctx.X.column(j)
        ctx.E[rows] += vals * dbet
    ctx.A -= ctx.vxsum[j] * dbet / ctx.vsum


def cd_solve(
    ctx: PathContext,
    backend: GradientCurvature,
    tol: float,
    max_iter: int,
    max_reweight: Optional[int] = None,
) -> CDResult:
    r"""Run coordinate descent at the penalty level stored on `ctx`.

    Sweeps alternate between a full pass over every admissible variable and
    passes over the active set only (nonzero or unpenalized variables). A full
    pass is preceded by an IRLS reweighting step for families that need one.
    After an active pass whose largest curvature-scaled squared move
    :math:`\max_j H_j \Delta_j^2` falls below `tol`, a full pass re-validates
    the inactive variables; the solve ends once a full pass finishes under
    `tol`.

    Parameters
    ----------
    ctx : PathContext
        Run state, mutated in place.
    backend : GradientCurvature
        Gradient strategy for this run.
    tol : float
        Convergence threshold on the scaled squared moves.
    max_iter : int
        Maximum number of sweeps.
    max_reweight : int, optional
        Maximum number of reweighting steps. Reaching it ends the solve
        without a warning. None means unlimited.

    Returns
    -------
    CDResult
    """
    family = ctx.family
    dopen = np.isfinite(ctx.l1pen)
    finite = np.isfinite(ctx.W)
    penalized = ctx.W > 0.0

    bdiff = np.inf
    exit_code = EXIT_OK
    dozero = True
    t = 0
    rw = 0

    while bdiff > tol or dozero:
        bdiff = 0.0

        if dozero and family.needs_reweight:
            rw += 1
            vsum = family.reweight(ctx.A, ctx.E, ctx.y, ctx.prior, ctx.V, ctx.Z)
            if vsum == 0.0:
                warnings.warn("Infinite likelihood.", GamlrWarning)
                exit_code = EXIT_STOP
                break
            ctx.vsum = vsum
            backend.refresh_curvature(ctx)
            dbet = weighted_intercept(ctx.V, ctx.Z, ctx.E, ctx.vsum) - ctx.A
            ctx.A += dbet
            bdiff = abs(ctx.vsum * dbet * dbet)

        for j in range(ctx.p):
            if not finite[j]:
                continue
            # inactive variables wait for the next full sweep
            if not dozero and ctx.B[j] == 0.0 and penalized[j]:
                continue

            ctx.G[j] = backend.gradient(ctx, j)

            # null model: gradients only for penalized variables
            if not dopen and penalized[j]:
                continue

            dbet = coordinate_move(ctx, j)
            if dbet != 0.0:
                apply_move(ctx, backend, j, dbet)
                bdiff = max(bdiff, ctx.H[j] * dbet * dbet)

        if not family.needs_reweight and bdiff == 0.0 and dozero:
            break

        t += 1

        if t == max_iter:
            warnings.warn("Hit max CD iterations.", GamlrWarning)
            exit_code = EXIT_WARNING
            break

        if family.needs_reweight and max_reweight is not None and rw >= max_reweight:
            break

        if dozero:
            dozero = False
        elif bdiff < tol:
            dozero = True

    backend.finalize(ctx)
    return CDResult(exit_code=exit_code, npass=t, nreweight=rw)
