"""Timer core: plans, tick sources, announcers and the execution engine."""
