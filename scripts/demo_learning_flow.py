"""Demo: enroll, study, pass the quiz and mint a certificate using FastAPI TestClient.

Runs entirely in-process against the in-memory store and ledger.

Run with:
    python scripts/demo_learning_flow.py
"""

from __future__ import annotations

from fastapi.testclient import TestClient

from academy.core.config import SETTINGS
from academy.main import app
from academy.repos.store import InMemoryLearningStore
from academy.services.platform import build_platform, sample_courses

LEARNER = "0x1234567890abcdef1234567890abcdef12345678"
COURSE = "blockchain-fundamentals"
HEADERS = {"X-Wallet-Address": LEARNER}


def main() -> None:
    app.state.platform = build_platform(
        SETTINGS, store=InMemoryLearningStore(sample_courses())
    )
    client = TestClient(app)

    # ── Step 1: enroll ──────────────────────────────────────────────
    r = client.post(f"/v1/courses/{COURSE}/enroll", headers=HEADERS)
    print(f"1. POST enroll             → {r.status_code}  (progress 0)")
    assert r.status_code == 201, r.text

    # ── Step 2: first module ────────────────────────────────────────
    r = client.post(f"/v1/courses/{COURSE}/modules/bf-1/complete", headers=HEADERS)
    print(f"2. POST complete bf-1      → {r.status_code}  "
          f"(progress {r.json()['enrollment']['progress']})")

    # ── Step 3: quiz module without passing ─────────────────────────
    r = client.post(f"/v1/courses/{COURSE}/modules/bf-2/complete", headers=HEADERS)
    print(f"3. POST complete bf-2      → {r.status_code}  ({r.json()['kind']})")

    # ── Step 4: pass the quiz ───────────────────────────────────────
    r = client.post(
        f"/v1/courses/{COURSE}/modules/bf-2/quiz",
        headers=HEADERS,
        json={"answers": {"q1": 1}},
    )
    print(f"4. POST quiz bf-2          → {r.status_code}  (score {r.json()['score']})")

    # ── Step 5: finish the remaining modules ────────────────────────
    for module_id in ("bf-2", "bf-3", "bf-4"):
        r = client.post(
            f"/v1/courses/{COURSE}/modules/{module_id}/complete", headers=HEADERS
        )
    body = r.json()
    print(f"5. POST complete bf-2..4   → {r.status_code}  "
          f"(progress {body['enrollment']['progress']}, "
          f"can_mint={body['can_mint_certificate']})")
    assert body["course_completed"], "course not completed!"

    # ── Step 6: mint ────────────────────────────────────────────────
    r = client.post(f"/v1/courses/{COURSE}/certificate/mint", headers=HEADERS)
    print(f"6. POST certificate/mint   → {r.status_code}  "
          f"(token {r.json()['certificate_token_id']})")

    # ── Step 7: rate ────────────────────────────────────────────────
    r = client.put(
        f"/v1/courses/{COURSE}/rating",
        headers=HEADERS,
        json={"stars": 5, "review": "clear and practical"},
    )
    print(f"7. PUT  rating             → {r.status_code}")

    print("\nDone: enrolled, completed, certified.")


if __name__ == "__main__":
    main()
