"""
Ops Commander: stress-mode fan-out, pod lifecycle broadcast and chaos kills
for a fleet of identical replicas running on Kubernetes.
"""

__version__ = "0.1.0"
