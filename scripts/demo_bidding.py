#!/usr/bin/env python3
"""
Live demo: a client posts a job, three pros bid, the client picks one.

Carol: client who needs a tap fixed
Pete, Paula, Priya: plumbers

Showcases:
  1. Signup with a fixed role (client or pro)
  2. Job posting with counter-offers allowed
  3. Bids at the listed price and counter-offers
  4. Duplicate bids refused
  5. Declining one bid (twice, harmlessly)
  6. Approving a bid: siblings rejected, job in progress
  7. Late bids refused, job completed, pro credited

Run:
  1. Start the API:  uvicorn marketplace.main:app --port 8080
  2. Run this demo:  python scripts/demo_bidding.py [base_url]
"""

import hashlib
import json
import secrets
import sys
from datetime import UTC, datetime

import httpx
from nacl.encoding import HexEncoder
from nacl.signing import SigningKey

BASE_URL = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8080"

BOLD = "\033[1m"
DIM = "\033[2m"
GREEN = "\033[92m"
BLUE = "\033[94m"
YELLOW = "\033[93m"
RED = "\033[91m"
CYAN = "\033[96m"
MAGENTA = "\033[95m"
RESET = "\033[0m"


def banner(text: str) -> None:
    print(f"\n{'═' * 64}")
    print(f"  {BOLD}{text}{RESET}")
    print(f"{'═' * 64}")


def step(num: int, text: str) -> None:
    print(f"\n{BOLD}{CYAN}Step {num:2d}{RESET} │ {text}")


def says(name: str, color: str, msg: str) -> None:
    print(f"         {color}{BOLD}{name}{RESET}: {msg}")


def platform_says(msg: str) -> None:
    print(f"         {MAGENTA}⚙ Platform{RESET}: {msg}")


def fail(msg: str) -> None:
    print(f"\n{RED}{BOLD}✖ FAILED: {msg}{RESET}")
    sys.exit(1)


def expect(resp: httpx.Response, status: int, context: str) -> dict | list:
    if resp.status_code != status:
        fail(f"{context}: expected {status}, got {resp.status_code}: {resp.text}")
    return resp.json()


class User:
    """A marketplace user holding an Ed25519 key that signs every request."""

    def __init__(self, name: str, role: str, color: str) -> None:
        self.name = name
        self.role = role
        self.color = color
        self.signing_key = SigningKey.generate()
        self.public_hex = self.signing_key.verify_key.encode(encoder=HexEncoder).decode()
        self.profile_id: str | None = None
        self.http = httpx.Client(base_url=BASE_URL, timeout=30.0)

    def _sign(self, method: str, path: str, body: bytes) -> dict[str, str]:
        timestamp = datetime.now(UTC).isoformat()
        body_hash = hashlib.sha256(body).hexdigest()
        message = f"{timestamp}\n{method}\n{path}\n{body_hash}".encode()
        signature = self.signing_key.sign(message, encoder=HexEncoder).signature.decode()
        return {
            "Authorization": f"ProfileSig {self.profile_id}:{signature}",
            "X-Timestamp": timestamp,
            "X-Nonce": secrets.token_hex(16),
        }

    def request(self, method: str, path: str, data: dict | None = None) -> httpx.Response:
        body = json.dumps(data).encode() if data is not None else b""
        headers = {"Content-Type": "application/json"}
        if self.profile_id:
            headers.update(self._sign(method, path, body))
        return self.http.request(method, path, content=body, headers=headers)

    def signup(self, **extra: object) -> None:
        data = expect(self.request("POST", "/profiles", {
            "public_key": self.public_hex,
            "full_name": self.name,
            "role": self.role,
            **extra,
        }), 201, f"{self.name} signup")
        self.profile_id = data["profile_id"]
        says(self.name, self.color, f"Signed up as {self.role} ({self.profile_id[:8]}...)")


def main() -> None:
    banner("Home Services Marketplace — Live Demo")
    print(f"\n{DIM}Checking API at {BASE_URL}...{RESET}")
    try:
        r = httpx.get(f"{BASE_URL}/health", timeout=3)
        if r.status_code != 200:
            fail(f"API returned {r.status_code}")
    except httpx.ConnectError:
        fail(f"Cannot connect to {BASE_URL}. Start the API first:\n  uvicorn marketplace.main:app --port 8080")
    print(f"{GREEN}✓ API is running{RESET}")

    carol = User("Carol", "client", BLUE)
    pros = [User(n, "pro", YELLOW) for n in ("Pete", "Paula", "Priya")]

    banner("Act 1: Signup")
    step(1, "Carol and three plumbers sign up")
    carol.signup()
    for pro in pros:
        pro.signup(specializations=["Plumbing"], bio=f"{pro.name} fixes leaks")

    banner("Act 2: Posting and bidding")
    step(2, "Carol posts a job and allows counter-offers")
    job = expect(carol.request("POST", "/jobs", {
        "title": "Fix leaking kitchen tap",
        "description": "Drips constantly; washer probably gone.",
        "category": "Plumbing",
        "price_offer": "80.00",
        "schedule_description": "Weekday evenings",
        "allow_counter_offers": True,
    }), 201, "Post job")
    job_id = job["job_id"]
    says("Carol", BLUE, f"Posted '{job['title']}' for {job['price_offer']} ({job['status']})")

    step(3, "Pete accepts the listed price, Paula and Priya counter")
    bids = {}
    for pro, body in zip(pros, ({}, {"price": "95.00"}, {"price": "75.00", "message": "Can come tonight"})):
        bid = expect(pro.request("POST", f"/jobs/{job_id}/bids", body), 201, f"{pro.name} bid")
        bids[pro.name] = bid
        says(pro.name, YELLOW, f"Bid {bid['price']}: {bid['message']}")

    step(4, "Pete tries to bid again")
    resp = pros[0].request("POST", f"/jobs/{job_id}/bids", {"price": "70.00"})
    body = expect(resp, 409, "Duplicate bid")
    platform_says(f"{body['code']}: {body['detail']}")

    banner("Act 3: Choosing a pro")
    step(5, "Carol declines Paula's bid (twice; the second is a no-op)")
    for _ in range(2):
        bid = expect(carol.request("POST", f"/bids/{bids['Paula']['bid_id']}/decline"), 200, "Decline")
    platform_says(f"Paula's bid is {bid['status']}")

    step(6, "Carol approves Priya's bid")
    data = expect(carol.request("POST", f"/bids/{bids['Priya']['bid_id']}/approve"), 200, "Approve")
    platform_says(f"Job is now {data['status']}")
    for b in data["bids"]:
        platform_says(f"  {b['pro']['full_name']:<6} {b['price']:>8}  {b['status']}")

    step(7, "A late bid is refused")
    late = User("Lou", "pro", YELLOW)
    late.signup()
    body = expect(late.request("POST", f"/jobs/{job_id}/bids", {}), 409, "Late bid")
    platform_says(f"{body['code']}: {body['detail']}")

    step(8, "Carol marks the job completed")
    data = expect(carol.request("POST", f"/jobs/{job_id}/complete"), 200, "Complete")
    platform_says(f"Job is now {data['status']}")
    priya = expect(carol.request("GET", f"/profiles/{pros[2].profile_id}"), 200, "Priya profile")
    says("Priya", YELLOW, f"Completed jobs: {priya['completed_jobs_count']}")

    banner("Demo complete")


if __name__ == "__main__":
    main()
