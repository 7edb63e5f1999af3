from datetime import datetime

import pytest

from farmrecords.services.records.collections import get_collection_spec
from farmrecords.services.records.work_log_service import WorkLogService

USER = "USRTEST0001"


@pytest.fixture
def svc(db):
    return WorkLogService(db, get_collection_spec("work-logs"), USER, actor_name="農園 太郎")


@pytest.fixture
def masters(db):
    field_id = db["fields"].insert_one({"name": "第1圃場", "userId": USER}).inserted_id
    fertilizer_id = db["fertilizers"].insert_one(
        {"name": "化成8-8-8", "nitrogenContent": 8, "phosphorusContent": 8, "potassiumContent": 8, "userId": USER}
    ).inserted_id
    seed_id = db["seeds"].insert_one({"name": "トマト", "variety": "桃太郎", "userId": USER}).inserted_id
    pesticide_id = db["pesticides"].insert_one({"name": "X乳剤", "userId": USER}).inserted_id
    return {"field": str(field_id), "fertilizer": str(fertilizer_id),
            "seed": str(seed_id), "pesticide": str(pesticide_id)}


class TestLinkedRecordsOnCreate:
    def test_fertilizing_creates_fertilizer_use(self, svc, db, masters):
        log = svc.create({"date": "2024-05-01", "workType": "施肥", "fieldId": masters["field"],
                          "workHours": 2, "fertilizerId": masters["fertilizer"],
                          "fertilizerAmount": 20, "fertilizerUnit": "kg", "fertilizerMethod": "全面散布"})
        use = db["fertilizerUses"].find_one({"workLogId": log["id"]})
        assert use["fertilizerName"] == "化成8-8-8"
        assert use["fieldName"] == "第1圃場"
        assert (use["nitrogen"], use["phosphorus"], use["potassium"]) == (8, 8, 8)
        assert use["amount"] == 20
        assert use["date"] == datetime(2024, 5, 1)
        assert use["userId"] == USER
        assert use["appliedByName"] == "農園 太郎"
        assert use["notes"] == f"作業日誌より自動作成 (作業ID: {log['id']})"

    def test_seeding_creates_seed_use(self, svc, db, masters):
        log = svc.create({"date": "2024-03-01", "workType": "播種", "fieldName": "A",
                          "seedId": masters["seed"], "seedAmount": 3})
        use = db["seedUses"].find_one({"workLogId": log["id"]})
        assert use["seedName"] == "トマト (桃太郎)"
        assert use["plantedBy"] == USER

    def test_spraying_creates_pesticide_use(self, svc, db, masters):
        log = svc.create({"date": "2024-05-10", "workType": "防除", "fieldName": "A",
                          "pesticideId": masters["pesticide"], "targetPest": "アブラムシ",
                          "dilutionRate": 1000, "weather": "晴れ"})
        use = db["pesticideUses"].find_one({"workLogId": log["id"]})
        assert use["pesticideName"] == "X乳剤"
        assert use["targetPest"] == "アブラムシ"
        assert use["dilutionRate"] == 1000
        assert use["unit"] == "L"

    def test_other_work_types_link_nothing(self, svc, db, masters):
        log = svc.create({"date": "2024-05-10", "workType": "除草", "fieldName": "A",
                          "pesticideId": masters["pesticide"]})
        assert log["pesticideId"] is None
        for collection in ("fertilizerUses", "seedUses", "pesticideUses"):
            assert db[collection].count_documents({}) == 0


class TestLinkedRecordsOnChange:
    def test_update_replaces_linked_record(self, svc, db, masters):
        log = svc.create({"date": "2024-05-01", "workType": "施肥", "fieldName": "A",
                          "fertilizerId": masters["fertilizer"], "fertilizerAmount": 20})
        svc.update(log["id"], {"date": "2024-05-02", "workType": "防除", "fieldName": "A",
                               "pesticideId": masters["pesticide"]})
        assert db["fertilizerUses"].count_documents({"workLogId": log["id"]}) == 0
        uses = list(db["pesticideUses"].find({"workLogId": log["id"]}))
        assert len(uses) == 1
        assert uses[0]["date"] == datetime(2024, 5, 2)

    def test_update_same_type_keeps_one_record(self, svc, db, masters):
        log = svc.create({"date": "2024-05-01", "workType": "施肥", "fieldName": "A",
                          "fertilizerId": masters["fertilizer"], "fertilizerAmount": 20})
        svc.update(log["id"], {"date": "2024-05-01", "workType": "施肥", "fieldName": "A",
                               "fertilizerId": masters["fertilizer"], "fertilizerAmount": 25})
        uses = list(db["fertilizerUses"].find({"workLogId": log["id"]}))
        assert [u["amount"] for u in uses] == [25]

    def test_delete_removes_linked_record(self, svc, db, masters):
        log = svc.create({"date": "2024-05-01", "workType": "防除", "fieldName": "A",
                          "pesticideId": masters["pesticide"]})
        svc.delete(log["id"])
        assert db["pesticideUses"].count_documents({}) == 0
        assert db["workLogs"].count_documents({}) == 0

    def test_other_users_linked_records_untouched(self, svc, db, masters):
        log = svc.create({"date": "2024-05-01", "workType": "防除", "fieldName": "A",
                          "pesticideId": masters["pesticide"]})
        db["pesticideUses"].insert_one({"workLogId": log["id"], "userId": "someone-else"})
        svc.delete(log["id"])
        assert db["pesticideUses"].count_documents({"userId": "someone-else"}) == 1


class TestWorkLogEndpoint:
    def test_spraying_log_reaches_traceability_chain(self, client, auth_headers, db, masters):
        client.post("/api/v1/records/work-logs",
                    json={"date": "2024-05-10", "workType": "防除", "fieldName": "A",
                          "pesticideId": masters["pesticide"], "targetPest": "アブラムシ"},
                    headers=auth_headers)
        client.post("/api/v1/records/harvests",
                    json={"cropName": "トマト", "fieldName": "A", "harvestDate": "2024-06-01", "quantity": 50},
                    headers=auth_headers)

        body = client.get("/api/v1/traceability/lots?start=2024-06-01&end=2024-06-30",
                          headers=auth_headers).json()
        (lot,) = body["lots"].values()
        assert [p["pesticideName"] for p in lot["pesticides"]] == ["X乳剤"]
        assert db["pesticideUses"].find_one()["appliedByName"] == "農園 太郎"
