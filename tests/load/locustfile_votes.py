"""Locust contention test: many voters hammering a single post.

Every simulated user flips, withdraws and re-casts its vote on the same post
as fast as it can. The counter is moved by relative UPDATEs, so no vote is
lost however the requests interleave.

Validation checklist:
  1. Vote requests return 200; a 409 means a user's own retries were
     exhausted under contention (acceptable, counted separately).
  2. No 500s.
  3. After the run, the post's counter equals the signed sum of its votes:

       SELECT p.votes,
              COALESCE(SUM(CASE v.vote_type WHEN 'up' THEN 1 ELSE -1 END), 0)
       FROM posts p
       LEFT JOIN votes v ON v.item_type = 'post' AND v.item_id = p.id
       WHERE p.id = :post_id
       GROUP BY p.votes;

     Both columns must match.

Run command:
    # Raise the write bucket: the default 30/min would turn most requests into 429s
    RATE_LIMIT_WRITE_PER_MINUTE=100000 locust -f tests/load/locustfile_votes.py \\
      --host http://localhost:8000 \\
      --users 50 --spawn-rate 10 --run-time 60s \\
      --headless --only-summary --csv=results/votes

Prerequisites:
    1. Start the API with Postgres and Redis
    2. mkdir -p results/
"""

import os
import random
import uuid

from locust import HttpUser, constant, events, task
from locust.clients import HttpSession

TARGET_POST_ID = int(os.environ.get("TARGET_POST_ID", "0"))

_target = {"post_id": TARGET_POST_ID}


def _session(environment) -> HttpSession:
    return HttpSession(base_url=environment.host, request_event=environment.events.request, user=None)


@events.test_start.add_listener
def create_target_post(environment, **kwargs) -> None:
    """Create the contended post unless TARGET_POST_ID points at an existing one."""
    if _target["post_id"]:
        return
    session = _session(environment)
    resp = session.post("/api/v1/users", json={"username": f"owner-{uuid.uuid4().hex[:12]}"})
    headers = {"X-API-Key": resp.json()["api_key"]}
    post = session.post("/api/v1/posts", json={"title": "Contended post"}, headers=headers)
    _target["post_id"] = post.json()["id"]


@events.test_stop.add_listener
def report_final_counter(environment, **kwargs) -> None:
    if not _target["post_id"]:
        return
    resp = _session(environment).get(f"/api/v1/posts/{_target['post_id']}")
    if resp.status_code == 200:
        print(f"post {_target['post_id']} final votes counter: {resp.json()['votes']}")


class VoteStormUser(HttpUser):
    """One voter repeatedly casting random votes on the shared post."""

    wait_time = constant(0)

    def on_start(self) -> None:
        resp = self.client.post("/api/v1/users", json={"username": f"voter-{uuid.uuid4().hex[:12]}"})
        if resp.status_code == 201:
            self.headers = {"X-API-Key": resp.json()["api_key"]}
        else:
            self.headers = {}
        self.conflicts = 0

    @task
    def cast_vote(self) -> None:
        payload = {
            "item_id": _target["post_id"],
            "item_type": "post",
            "vote_type": random.choice(["up", "down"]),
        }
        with self.client.post(
            "/api/v1/votes",
            json=payload,
            headers=self.headers,
            catch_response=True,
            name="/api/v1/votes [contended]",
        ) as resp:
            if resp.status_code == 200:
                resp.success()
            elif resp.status_code == 409:
                # Retries exhausted under contention; the user just votes again
                self.conflicts += 1
                resp.success()
            else:
                resp.failure(f"Unexpected status {resp.status_code}")
