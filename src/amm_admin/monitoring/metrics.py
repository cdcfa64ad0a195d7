from __future__ import annotations

from prometheus_client import Counter

# Solana metrics
solana_tx_total = Counter(
    "amm_admin_tx_total", "Admin transactions submitted", ["instruction", "status"]
)
