"""Logit link helpers for perturbing allele frequencies on the logit scale."""

from __future__ import annotations

import numpy as np
from scipy.special import expit
from scipy.special import logit as _logit


def logit(p):
    """log(p / (1 - p)); returns ±inf at 0 and 1."""
    return _logit(np.asarray(p, dtype=np.float64))


def inv_logit(x):
    """1 / (1 + exp(-x)); maps the real line (and ±inf) onto [0, 1]."""
    return expit(np.asarray(x, dtype=np.float64))
