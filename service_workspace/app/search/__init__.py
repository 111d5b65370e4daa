"""
Search package.

- index: SearchIndex, an inverted index built from a cached snapshot.
- table_search: cache-first search over table store ranges, caching both
  the index and query results under the range's tab.
"""
