"""CSV import pipeline for the permits directory.

Streams CSV files in bounded chunks into a target table, resolving Arabic
names through curated translations (with transliteration as a fallback) and
folding contractor, consultant, developer and land-registry rows into the
derived companies and areas directories.
"""
