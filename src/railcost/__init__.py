"""railcost: cross-rail currency conversion cost estimation in basis points."""

__version__ = "0.1.0"
