"""Numerical defaults and tolerances shared by the solvers."""

import numpy as np

# Element type of freshly allocated buffers
DTYPE = np.float32

# Machine epsilon of single precision floats
FLT_EPSILON = float(np.finfo(np.float32).eps)

# Pivot magnitude below which LU/Cholesky factorisations report singularity
SINGULAR_TOLERANCE = FLT_EPSILON

# Simplex: reduced-cost and pivot-entry tolerance, also the substitute for
# a vanishing pivot during row normalisation
PIVOT_TOLERANCE = FLT_EPSILON

# Smallest squared diagonal a Cholesky downdate may leave behind
DOWNDATE_TOLERANCE = FLT_EPSILON

DEFAULT_ITERATION_LIMIT = 200

# Unscented transform defaults (beta = 2 is optimal for Gaussian priors)
DEFAULT_ALPHA = 1.0
DEFAULT_BETA = 2.0
DEFAULT_LAMBDA_RLS = 0.995
