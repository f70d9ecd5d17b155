"""
Sprinkler Network Structure Search Example

Recovers the classic cloudy / sprinkler / rain / wet-grass network from
sampled data.

This example shows how to:
1. Prepare discrete data for the search
2. Configure and run several Metropolis chains
3. Read posterior arc probabilities
4. Extract the most probable network
"""

import logging

import numpy as np
import pandas as pd

from tom_search import StructureSearch, SearchConfig

logging.basicConfig(level=logging.INFO, format='%(levelname)s %(name)s: %(message)s')

print("=" * 70)
print("SPRINKLER NETWORK - STRUCTURE SEARCH EXAMPLE")
print("=" * 70)

# ==============================================================================
# STEP 1: SAMPLE DATA
# ==============================================================================

print("\n📁 Step 1: Sampling data from the sprinkler network...")


def sample_sprinkler(n_rows, seed=0):
    rng = np.random.default_rng(seed)
    cloudy = rng.random(n_rows) < 0.5
    sprinkler = rng.random(n_rows) < np.where(cloudy, 0.1, 0.5)
    rain = rng.random(n_rows) < np.where(cloudy, 0.8, 0.2)
    p_wet = np.select(
        [sprinkler & rain, sprinkler | rain],
        [0.99, 0.9],
        default=0.01
    )
    wet = rng.random(n_rows) < p_wet
    return pd.DataFrame({
        'cloudy': cloudy.astype(int),
        'sprinkler': sprinkler.astype(int),
        'rain': rain.astype(int),
        'wet_grass': wet.astype(int),
    })


df = sample_sprinkler(2000)
print(f"   ✓ Sampled {len(df)} cases over {df.shape[1]} variables")

# ==============================================================================
# STEP 2: RUN THE SEARCH
# ==============================================================================

print("\n🔍 Step 2: Running the structure search...")

config = SearchConfig(
    max_num_parents=2,
    structure_prior="uniform",
    n_steps=20000,
    burn_in_steps=2000,
    n_chains=4,
    use_parallel=False,
    random_seed=0
)
search = StructureSearch(config)
results = search.fit(df)

print(f"   ✓ Best message length: {results.best_cost:.1f} nits")
for summary in results.chain_summaries:
    rates = ", ".join(f"{k}={v:.2f}" for k, v in summary['acceptance_rates'].items())
    print(f"   • chain seed={summary['seed']}: best={summary['best_cost']:.1f}  ({rates})")

# ==============================================================================
# STEP 3: POSTERIOR ARC PROBABILITIES
# ==============================================================================

print("\n📊 Step 3: Posterior arc probabilities (rows = parent, columns = child)")
print(results.arc_probabilities.round(2).to_string())

print("\n   Arcs with probability >= 0.5:")
for parent, child, p in results.edges(threshold=0.5):
    print(f"   {parent:>10} -> {child:<10} {p:.2f}")

# ==============================================================================
# STEP 4: MOST PROBABLE NETWORK
# ==============================================================================

print("\n🔗 Step 4: Most probable network")
graph = search.most_probable_network()
for parent, child, data in graph.edges(data=True):
    print(f"   {parent} -> {child}  (p={data['probability']:.2f})")

print("\n   Best single model found:")
print(f"   order: {' < '.join(results.best_order)}")
for parent, child in results.best_arcs:
    print(f"   {parent} -> {child}")

print("\n" + "=" * 70)
print("DONE")
print("=" * 70)
