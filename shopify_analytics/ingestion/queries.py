"""
GraphQL Admin API query documents.

Every connection query takes ``$first`` / ``$after`` so it can be driven by
the pagination engine, and returns ``pageInfo { hasNextPage endCursor }``.
Protected customer fields (email, names, addresses) are not requested.
"""

from datetime import datetime, timezone

ORDERS_QUERY = """
query getOrders($first: Int!, $after: String, $query: String) {
  orders(first: $first, after: $after, query: $query) {
    edges {
      cursor
      node {
        id
        name
        createdAt
        processedAt
        cancelledAt
        displayFinancialStatus
        displayFulfillmentStatus
        tags
        customer {
          id
        }
        totalPriceSet {
          shopMoney {
            amount
            currencyCode
          }
        }
        subtotalPriceSet {
          shopMoney {
            amount
            currencyCode
          }
        }
        totalTaxSet {
          shopMoney {
            amount
            currencyCode
          }
        }
        lineItems(first: 100) {
          edges {
            node {
              id
              title
              quantity
              sku
              vendor
              originalUnitPriceSet {
                shopMoney {
                  amount
                }
              }
              variant {
                id
                title
                price
                product {
                  id
                  productType
                }
              }
            }
          }
        }
      }
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}
"""

PRODUCTS_QUERY = """
query getProducts($first: Int!, $after: String, $query: String) {
  products(first: $first, after: $after, query: $query) {
    edges {
      cursor
      node {
        id
        title
        handle
        vendor
        productType
        status
        createdAt
        tags
        images(first: 10) {
          edges {
            node {
              id
              url
              altText
            }
          }
        }
        variants(first: 100) {
          edges {
            node {
              id
              title
              sku
              price
              compareAtPrice
              inventoryQuantity
              inventoryItem {
                id
              }
            }
          }
        }
      }
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}
"""

CUSTOMERS_QUERY = """
query getCustomers($first: Int!, $after: String, $query: String) {
  customers(first: $first, after: $after, query: $query) {
    edges {
      cursor
      node {
        id
        createdAt
        numberOfOrders
        amountSpent {
          amount
          currencyCode
        }
        emailMarketingConsent {
          marketingState
        }
        tags
      }
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}
"""

LOCATIONS_QUERY = """
query getLocations($first: Int!, $after: String) {
  locations(first: $first, after: $after) {
    edges {
      cursor
      node {
        id
        name
        isActive
      }
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}
"""

INVENTORY_LEVELS_QUERY = """
query getInventoryLevels($locationId: ID!, $first: Int!, $after: String) {
  location(id: $locationId) {
    id
    name
    inventoryLevels(first: $first, after: $after) {
      edges {
        cursor
        node {
          id
          quantities(names: ["available"]) {
            name
            quantity
          }
          item {
            id
          }
        }
      }
      pageInfo {
        hasNextPage
        endCursor
      }
    }
  }
}
"""


def orders_date_query(start: datetime, end: datetime) -> str:
    """
    Search syntax restricting orders to a creation-time window.

    Bare dates compare against midnight, so both bounds are sent as full
    UTC timestamps.
    """
    return f"created_at:>='{_search_time(start)}' AND created_at:<='{_search_time(end)}'"


def _search_time(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")
