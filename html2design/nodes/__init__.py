"""Design node archetypes, element classification, naming and tree building."""
