# scripts/test/simulate_traffic.py
"""
Drive the HTTP API end to end: two users, one plate, a search, a reveal,
a retried reveal, and a referral.
Usage: python scripts/test/simulate_traffic.py --url http://localhost:8080
"""

import argparse
import uuid
import requests


def call(method, url, **kwargs):
    resp = requests.request(method, url, timeout=10, **kwargs)
    print(f"{method:6} {url.split('/api/v1')[-1]:40} → {resp.status_code} {resp.text[:160]}")
    return resp


def main():
    parser = argparse.ArgumentParser(description="Simulate PlateLink traffic")
    parser.add_argument("--url", default="http://localhost:8080")
    parser.add_argument("--plate", default="MH 12 AB 1234")
    parser.add_argument("--api-key", default=None)
    args = parser.parse_args()

    base = f"{args.url.rstrip('/')}/api/v1"
    headers = {"X-API-Key": args.api_key} if args.api_key else {}

    owner = call("POST", f"{base}/users", headers=headers, json={
        "full_name": "Riyaansh Mittal", "phone": "9876543210", "email": "riyaansh@example.com",
        "contact_methods": {"phone": True, "whatsapp": True},
    }).json()
    searcher = call("POST", f"{base}/users", headers=headers, json={"full_name": "Priya Sharma"}).json()

    vehicle = call("POST", f"{base}/vehicles", headers=headers, json={
        "owner_id": owner["user_id"], "raw_plate": args.plate, "wheel_category": "four_wheeler",
    })
    if vehicle.status_code == 409:
        print("Plate already registered — continuing with lookup")

    found = call("GET", f"{base}/vehicles/by-plate", headers=headers,
                 params={"plate": args.plate, "user_id": searcher["user_id"]})
    if found.status_code != 200:
        return

    key = str(uuid.uuid4())
    body = {"user_id": searcher["user_id"], "vehicle_id": found.json()["vehicle_id"], "idempotency_key": key}
    call("POST", f"{base}/contacts/reveal", headers=headers, json=body)
    call("POST", f"{base}/contacts/reveal", headers=headers, json=body)   # retry: no second charge

    code = call("GET", f"{base}/referrals/stats", headers=headers,
                params={"user_id": owner["user_id"]}).json()["referral_code"]
    call("POST", f"{base}/referrals/apply", headers=headers, json={"user_id": searcher["user_id"], "code": code})
    call("GET", f"{base}/balance", headers=headers, params={"user_id": searcher["user_id"]})
    call("GET", f"{base}/ledger/history", headers=headers, params={"user_id": searcher["user_id"]})
    call("GET", f"{base}/notifications", headers=headers, params={"user_id": owner["user_id"]})


if __name__ == "__main__":
    main()
