"""
Recommendation engine: onboarding answers in, ranked content ids out.

Modules
-------
extractor  : extract_profile() — answers → UserPreferenceProfile. Pure.
candidates : load_candidate_pool() — ready catalog + exclusion set. Reads only.
scorer     : ScoreComponents + compute_score() / score(). Pure.
ranker     : score_candidates() + rank() — exclusion, 0.1 floor, sort, top N.
writer     : build_record() + write_recommendation() — run key + "latest".
reader     : latest record and resolved content, as the app reads them.
"""
