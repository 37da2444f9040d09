import requests
import json

BASE_URL = "http://127.0.0.1:8000"

trip = {
    "destination": "京都",
    "start_date": "2025-06-01",
    "end_date": "2025-06-03",
    "transport": "新幹線",
}


def run_test():
    url = f"{BASE_URL}/api/travel-time"
    params = {"origin": "東京駅", "destination": "成田空港", "mode": "driving"}
    print(f"➡️ GET {url} {params}")
    resp = requests.get(url, params=params)
    print(f"⬅️ Status: {resp.status_code}")
    print(json.dumps(resp.json(), ensure_ascii=False, indent=2))

    resp = requests.post(f"{BASE_URL}/api/trips", json=trip)
    session_id = resp.json()["session_id"]
    requests.put(f"{BASE_URL}/api/trips/{session_id}/departure", json={"location": "京都駅"})
    for name in ("金閣寺", "清水寺"):
        requests.post(f"{BASE_URL}/api/trips/{session_id}/spots", json={"name": name, "visit_date": "2025-06-01"})

    state = requests.get(f"{BASE_URL}/api/trips/{session_id}").json()
    for view in state["legs"]:
        leg = view["leg"]
        fetched = requests.post(
            f"{BASE_URL}/api/trips/{session_id}/legs/{leg['origin_id']}/{leg['destination_id']}/fetch"
        ).json()
        print(f"{leg['origin_name']} → {leg['destination_name']}: {fetched['info']}")

    requests.delete(f"{BASE_URL}/api/trips/{session_id}")


if __name__ == "__main__":
    run_test()
