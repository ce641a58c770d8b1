from locust import HttpUser, task, between
import random

class ApiUser(HttpUser):
    wait_time = between(0.1, 0.5)

    def on_start(self):
        # Register (or log in) a customer for this simulated client
        n = random.randint(1, 1_000_000)
        r = self.client.post("/users", json={"uid": f"load-{n}", "email": f"load-{n}@example.com", "name": f"user_{n}"})
        self.headers = {"Authorization": f"Bearer {r.json()['token']}"} if r.status_code in (200, 201) else None
        products = self.client.get("/products").json()
        self.product_id = products[0]["_id"] if products else None

    @task(3)
    def browse_products(self):
        self.client.get("/products")

    @task(1)
    def deduct_stock(self):
        # Concurrent deducts against one product; stock must never go negative
        if not self.headers or not self.product_id:
            return
        with self.client.patch(
            f"/products/{self.product_id}",
            json={"quantity": 1, "action": "deduct"},
            headers=self.headers,
            name="/products/[id]",
            catch_response=True,
        ) as r:
            if r.status_code == 400 and "Insufficient stock" in r.text:
                r.success()
            elif r.status_code == 200 and r.json()["available_quantity"] < 0:
                r.failure("stock went negative")

    @task(1)
    def read_reviews(self):
        self.client.get("/reviews")
