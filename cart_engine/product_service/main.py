# cart_engine/product_service/main.py
# dev mock of the product catalog, serves the shape ProductClient expects
from fastapi import FastAPI, HTTPException

app = FastAPI(title="Product Service (dev mock)")


PRODUCTS = {
    "1": {
        "id": "1",
        "name": "Classic Tee",
        "price": "300.00",
        "is_active": True,
        "images": ["/static/classic-tee.jpg"],
        "sizes": [
            {"size": "S", "in_stock": True, "quantity": 5},
            {"size": "M", "in_stock": True, "quantity": 10},
            {"size": "L", "in_stock": False, "quantity": 0},
        ],
    },
    "2": {
        "id": "2",
        "name": "Denim Jacket",
        "price": "899.00",
        "is_active": True,
        "images": ["/static/denim-jacket.jpg"],
        "sizes": [
            {"size": "M", "in_stock": True, "quantity": 3},
            {"size": "L", "in_stock": True, "quantity": 2},
        ],
    },
    "3": {
        "id": "3",
        "name": "Retired Sneaker",
        "price": "1299.00",
        "is_active": False,
        "images": [],
        "sizes": [{"size": "42", "in_stock": True, "quantity": 4}],
    },
}


@app.get("/products/{product_id}")
def get_product(product_id: str):
    product = PRODUCTS.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
